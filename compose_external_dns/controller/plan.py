"""
Plan module for Compose-External-DNS.

This module is responsible for calculating the changes needed to bring the
observed entries in line with the desired entries.
"""

import logging
from typing import Dict, List, Optional

from compose_external_dns.models.models import (
    DnsEntry,
    EntryUpdate,
    ObservedEntry,
    SetDifference,
    has_same_value,
)


class Plan:
    """
    Plan calculates the set difference between desired and observed entries.
    """

    def __init__(
        self,
        desired: List[DnsEntry],
        observed: List[ObservedEntry],
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize a Plan.

        Args:
            desired: Desired entries, keys are unique
            observed: Entries currently on the provider
            logger: Logger to report decisions on
        """
        self.desired = desired
        self.observed = observed
        self.logger = logger or logging.getLogger("compose-external-dns.plan")

    def calculate_changes(self) -> SetDifference:
        """
        Calculate the set difference.

        Every key appears in exactly one of add, update, delete or unchanged.
        Observed entries sharing a key with one already seen are deleted.

        Returns:
            SetDifference: Changes to be applied
        """
        changes = SetDifference()

        desired_by_key: Dict[str, DnsEntry] = {
            entry.key: entry for entry in self.desired
        }

        observed_by_key: Dict[str, ObservedEntry] = {}
        for observed in self.observed:
            if observed.key in observed_by_key:
                self.logger.debug(
                    f"Entry {observed.key} (id: {observed.id}) is a surplus record, deleting it"
                )
                changes.delete.append(observed)
                continue
            observed_by_key[observed.key] = observed

        for key, entry in desired_by_key.items():
            if key not in observed_by_key:
                self.logger.debug(f"Entry {key} will be created")
                changes.add.append(entry)

        for key, observed in observed_by_key.items():
            desired = desired_by_key.get(key)
            if desired is None:
                self.logger.debug(f"Entry {key} is no longer desired")
                changes.delete.append(observed)
            elif has_same_value(desired, observed):
                self.logger.debug(f"Entry {key} is up-to-date")
                changes.unchanged.append(observed)
            else:
                self.logger.debug(f"Entry {key} needs update")
                changes.update.append(EntryUpdate(old=observed, update=desired))

        return changes
