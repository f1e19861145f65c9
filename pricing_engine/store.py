"""
Pricing Table Store

Read-side lookup of the fixed Super-Agent table and per-Agent custom tables.
Every Agent table update is kept as a numbered version in an append-only
history, so a frozen quote can be traced back to the table that priced it.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Optional

from .config import DEFAULT_AGENT_PRICING, DEFAULT_SUPER_AGENT_TABLE
from .errors import PricingConfigurationMissing
from .models import AgentPricingHistoryEntry, AgentPricingTable, FixedPricingTable, HierarchyChain, utc_now
from .validators import InputValidator

logger = logging.getLogger(__name__)


class PricingTableStore:
    """Holds the tables a quote can be priced against."""

    def __init__(self, super_agent_table: FixedPricingTable = DEFAULT_SUPER_AGENT_TABLE):
        self.validator = InputValidator()
        self.validator.validate_fixed_table(super_agent_table)
        self._super_agent_table = super_agent_table
        self._agent_tables: dict[str, AgentPricingTable] = {}
        self._history: dict[str, list[AgentPricingHistoryEntry]] = {}
        self._lock = threading.Lock()

    @property
    def super_agent_table(self) -> FixedPricingTable:
        return self._super_agent_table

    def find_agent_table(self, agent_id: str) -> Optional[AgentPricingTable]:
        """Return the Agent's custom table, or None if none is configured."""
        with self._lock:
            return self._agent_tables.get(agent_id)

    def require_agent_table(self, agent_id: str) -> AgentPricingTable:
        table = self.find_agent_table(agent_id)
        if table is None:
            raise PricingConfigurationMissing(agent_id)
        return table

    def put_agent_table(
        self,
        table: AgentPricingTable,
        reason: str | None = None,
        changed_by: str | None = None,
        now: datetime | None = None,
    ) -> tuple[AgentPricingHistoryEntry, list[str]]:
        """Validate and store a new version of an Agent's table.

        Returns the history entry written and any validation warnings.
        """
        warnings = self.validator.validate_agent_table(table)
        now = now or utc_now()

        with self._lock:
            history = self._history.setdefault(table.agent_id, [])
            version = len(history) + 1
            stored = replace(table, version=version, is_default=False)
            entry = AgentPricingHistoryEntry(
                agent_id=table.agent_id,
                version=version,
                table=stored,
                change_type="created" if version == 1 else "updated",
                changed_at=now,
                reason=reason,
                changed_by=changed_by,
            )
            history.append(entry)
            self._agent_tables[table.agent_id] = stored

        logger.info(
            f"Agent {table.agent_id} pricing v{version} {entry.change_type}: "
            f"£{table.base_rate_per_500_words}/500 words, {table.agent_fee_percentage}% fee"
        )
        return entry, warnings

    def pricing_history(self, agent_id: str, limit: int | None = None, offset: int = 0) -> list[AgentPricingHistoryEntry]:
        """Stored versions of an Agent's table, newest first."""
        with self._lock:
            entries = list(reversed(self._history.get(agent_id, [])))
        end = offset + limit if limit is not None else None
        return entries[offset:end]

    def table_version(self, agent_id: str, version: int) -> AgentPricingTable:
        with self._lock:
            history = self._history.get(agent_id, [])
            if not 1 <= version <= len(history):
                raise PricingConfigurationMissing(agent_id, version)
            return history[version - 1].table

    def table_at(self, agent_id: str, moment: datetime) -> Optional[AgentPricingTable]:
        """The table that was in force for an Agent at moment, if any."""
        with self._lock:
            in_force = None
            for entry in self._history.get(agent_id, []):
                if entry.changed_at > moment:
                    break
                in_force = entry.table
            return in_force

    def effective_source(self, chain: HierarchyChain) -> FixedPricingTable | AgentPricingTable:
        """
        Pick the table a client is priced against.

        Agent-routed clients use their Agent's table; a missing table falls
        back to DEFAULT_AGENT_PRICING. Direct clients use the fixed table.
        """
        if not chain.routes_through_agent:
            return self._super_agent_table

        try:
            return self.require_agent_table(chain.agent_id)
        except PricingConfigurationMissing as e:
            logger.warning(f"{e}; using default agent pricing")
            return DEFAULT_AGENT_PRICING
