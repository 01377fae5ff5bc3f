"""Constants and configuration values for GitDepSec.

This module centralizes magic numbers and lookup tables that are used
across the codebase for easier maintenance.
"""

import os

# =============================================================================
# Repository Cache
# =============================================================================

# Saved analyses older than this are treated as a cache miss (3 days)
CACHE_TTL_SECONDS = int(os.environ.get("GITDEPSEC_CACHE_TTL_SECONDS", 3 * 24 * 3600))
CACHE_TTL_MS = CACHE_TTL_SECONDS * 1000

# Saved history entries are never evicted; inserts past this count are rejected
MAX_HISTORY_ITEMS = int(os.environ.get("GITDEPSEC_MAX_HISTORY_ITEMS", 10))

# Preferred when seeding a branch list from any saved branch of a repository
DEFAULT_BRANCH_NAMES = ("main", "master", "develop", "dev")


# =============================================================================
# Branch Pagination
# =============================================================================

BRANCH_PAGE_SIZE = 100

# Debounce window for URL input driven branch fetches (milliseconds)
BRANCH_FETCH_DEBOUNCE_MS = int(os.environ.get("GITDEPSEC_DEBOUNCE_MS", 400))


# =============================================================================
# Fix Plan
# =============================================================================

FIX_PLAN_SECTION_ORDER = (
    "executive_summary",
    "dependency_intelligence",
    "priority_phases",
    "automated_execution",
    "risk_management",
    "long_term_strategy",
    "metadata",
)

# Sections whose presence one level down marks a payload as ecosystem-keyed
ECOSYSTEM_MARKER_SECTIONS = ("executive_summary", "dependency_intelligence")

# Reserved key for errors that are not attributable to one dependency
GLOBAL_ERROR_KEY = "_global"

PHASE_STEP_MAP: dict[str, str] = {
    "preprocessing_start": "preprocessing",
    "preprocessing_complete": "preprocessing",
    "parallel_analysis_start": "intelligence",
    "parallel_analysis_complete": "intelligence",
    "intelligence_start": "intelligence",
    "intelligence_complete": "intelligence",
    "batch_start": "batch",
    "batch_processing": "batch",
    "batch_processing_complete": "batch",
    "batch_complete": "batch",
    "synthesis_start": "synthesis",
    "synthesis_executive_complete": "synthesis",
    "synthesis_intelligence_start": "synthesis",
    "synthesis_intelligence_complete": "synthesis",
    "synthesis_smart_actions_start": "synthesis",
    "synthesis_smart_actions_complete": "synthesis",
    "synthesis_phases_start": "synthesis",
    "synthesis_phases_complete": "synthesis",
    "synthesis_risk_start": "synthesis",
    "synthesis_risk_complete": "synthesis",
    "synthesis_complete": "synthesis",
    "enrichment_start": "enrichment",
    "enrichment_complete": "enrichment",
}

# Stream step names with a special meaning outside the phase table
STEP_GLOBAL_PLANNING_START = "global_planning_start"
STEP_GLOBAL_PLANNING_COMPLETE = "global_planning_complete"
STEP_GLOBAL_PLANNING_ERROR = "global_planning_error"
STEP_ANALYSIS_COMPLETE = "analysis_complete"


# =============================================================================
# Ecosystems
# =============================================================================

UNKNOWN_ECOSYSTEM = "unknown"

# Manifest file that labels the center node of each ecosystem graph
MANIFEST_FILES: dict[str, str] = {
    "npm": "package.json",
    "PyPI": "requirements.txt",
    "RubyGems": "Gemfile",
    "Maven": "pom.xml",
    "Pub": "pubspec.yaml",
    "Gradle": "build.gradle",
    "cargo": "Cargo.toml",
    "Composer": "composer.json",
}


# =============================================================================
# Backend API
# =============================================================================

DEFAULT_API_URL = os.environ.get("GITDEPSEC_API_URL", "http://localhost:8080")

# Default HTTP request timeout in seconds
DEFAULT_REQUEST_TIMEOUT = int(os.environ.get("GITDEPSEC_REQUEST_TIMEOUT", 20))

# Dependency analysis can take much longer than a branch listing
ANALYSIS_REQUEST_TIMEOUT = int(os.environ.get("GITDEPSEC_ANALYSIS_TIMEOUT", 60))
