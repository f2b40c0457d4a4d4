"""Related test file resolution."""

from testfocus.related.search import CandidateSearch, seed_tokens
from testfocus.related.resolver import RelatedTestsResolver, select_direct_tests

__all__ = ["CandidateSearch", "seed_tokens", "RelatedTestsResolver", "select_direct_tests"]
