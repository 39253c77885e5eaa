"""Public interface for the ``statement_insights`` package.

This module exposes the package's main entry points and public models as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .budget import compute_drafts, goal_projection, group_minor, impact_analysis
from .cache import EnrichmentCache
from .category_rules import category_for
from .config import BudgetPolicy, RetryPolicy
from .enrich import Enricher, EnrichmentReport, finalize_import
from .errors import InsightsError, MalformedResponseError, RemoteCallError, StatementParseError
from .heuristics import extract_merchant, extract_points
from .merchant_names import MerchantDirectory
from .models import (
    Budget,
    BudgetStrategy,
    CategorizationExample,
    CategoryDraft,
    EnrichedData,
    EnrichedMerchantInfo,
    FinancialGoal,
    HeuristicResult,
    ParsedTransaction,
    Transaction,
    TransactionType,
    UserProfile,
)
from .remote import EnrichmentClient, OpenAIEnrichmentClient
from .storage import JsonFileStore, MemoryStore

__all__ = [
    # Enrichment
    "Enricher",
    "EnrichmentCache",
    "EnrichmentClient",
    "EnrichmentReport",
    "OpenAIEnrichmentClient",
    "category_for",
    "extract_merchant",
    "extract_points",
    "finalize_import",
    # Budgets
    "BudgetPolicy",
    "compute_drafts",
    "goal_projection",
    "group_minor",
    "impact_analysis",
    # Infrastructure
    "JsonFileStore",
    "MemoryStore",
    "MerchantDirectory",
    "RetryPolicy",
    # Errors
    "InsightsError",
    "MalformedResponseError",
    "RemoteCallError",
    "StatementParseError",
    # Models
    "Budget",
    "BudgetStrategy",
    "CategorizationExample",
    "CategoryDraft",
    "EnrichedData",
    "EnrichedMerchantInfo",
    "FinancialGoal",
    "HeuristicResult",
    "ParsedTransaction",
    "Transaction",
    "TransactionType",
    "UserProfile",
]
