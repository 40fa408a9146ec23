"""Well-known internet probe targets."""

from typing import List

# Highly available public DNS resolvers, ordered by global reliability
DEFAULT_TARGETS = (
    "8.8.8.8",         # Google Public DNS
    "1.1.1.1",         # Cloudflare
    "8.8.4.4",         # Google Public DNS (secondary)
    "1.0.0.1",         # Cloudflare (secondary)
    "9.9.9.9",         # Quad9
    "208.67.222.222",  # OpenDNS
    "208.67.220.220",  # OpenDNS (secondary)
)


class TargetCatalog:
    """Ordered internet probe targets with the operator's choice promoted to the front."""

    def __init__(self, configured_target: str):
        """
        Initialize target catalog.

        Args:
            configured_target: Operator-configured internet target
        """
        self.configured_target = configured_target.strip()

    @property
    def primary_target(self) -> str:
        """The operator-configured target."""
        return self.configured_target

    def defaults(self) -> List[str]:
        """Built-in targets in priority order."""
        return list(DEFAULT_TARGETS)

    def candidates(self) -> List[str]:
        """
        Configured target followed by the built-in targets, without duplicates.

        Returns:
            List[str]: Candidate targets in probing order
        """
        ordered = [self.configured_target] if self.configured_target else []
        seen = {target.lower() for target in ordered}
        for target in DEFAULT_TARGETS:
            if target.lower() not in seen:
                ordered.append(target)
                seen.add(target.lower())
        return ordered
