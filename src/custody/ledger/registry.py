"""Token registry — allow-list of token ids the treasury will account for.

Two sources of allowed tokens:
- Registered tokens, added and removed by the operator at runtime.
- Reserved tokens, a fixed set supplied at construction (from the asset
  registry configuration). Reserved tokens are always allowed and can
  neither be registered nor unregistered.

Registered tokens are kept in a dense list with a token → 1-based position
index. Removal swaps the last token into the vacated slot and pops, so
every operation is O(1) amortized. Order is NOT stable across removals.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Hashable, Iterable, List, Optional

from custody.errors import AlreadyRegistered, NotRegistered, TokenNotAllowed


class TokenRegistry:
    """Allow-list of recognised token ids.

    Usage:
        registry = TokenRegistry(reserved={"native"})
        registry.register("usdc")
        registry.is_allowed("usdc")      # True
        registry.unregister("usdc")
        registry.is_allowed("native")    # True (reserved)
    """

    def __init__(self, reserved: Optional[Iterable[Hashable]] = None) -> None:
        self._reserved: FrozenSet[Hashable] = frozenset(reserved or ())
        self._tokens: List[Hashable] = []
        # 1-based so that a missing key and position 0 are never confused
        self._positions: Dict[Hashable, int] = {}

    @property
    def reserved(self) -> FrozenSet[Hashable]:
        return self._reserved

    @property
    def count(self) -> int:
        """Number of registered (non-reserved) tokens."""
        return len(self._tokens)

    def register(self, token: Hashable) -> None:
        """Add a token to the allow-list.

        Raises:
            AlreadyRegistered: If the token is registered or reserved.
        """
        self.check_register(token)
        self._tokens.append(token)
        self._positions[token] = len(self._tokens)

    def unregister(self, token: Hashable) -> None:
        """Remove a token from the allow-list.

        Raises:
            NotRegistered: If the token was never registered (reserved
                tokens are not registrations and cannot be removed).
        """
        self.check_unregister(token)
        position = self._positions[token]

        last_index = len(self._tokens) - 1
        slot = position - 1
        if slot != last_index:
            moved = self._tokens[last_index]
            self._tokens[slot] = moved
            self._positions[moved] = position
        self._tokens.pop()
        del self._positions[token]

    def check_register(self, token: Hashable) -> None:
        """Raise exactly what register() would, without changing anything."""
        if token in self._reserved:
            raise AlreadyRegistered(f"Token is reserved: {token}", token=token)
        if self.is_registered(token):
            raise AlreadyRegistered(f"Token already registered: {token}", token=token)

    def check_unregister(self, token: Hashable) -> None:
        if self.position_of(token) is None:
            raise NotRegistered(f"Token not registered: {token}", token=token)

    def is_registered(self, token: Hashable) -> bool:
        return token in self._positions

    def is_allowed(self, token: Hashable) -> bool:
        """True if the token is registered or reserved."""
        return token in self._positions or token in self._reserved

    def require_allowed(self, token: Hashable) -> None:
        if not self.is_allowed(token):
            raise TokenNotAllowed(f"Token not allowed: {token}", token=token)

    def tokens(self) -> List[Hashable]:
        """Registered tokens in current storage order."""
        return list(self._tokens)

    def position_of(self, token: Hashable) -> Optional[int]:
        """1-based storage position of a registered token, or None."""
        return self._positions.get(token)
