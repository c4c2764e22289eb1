"""
brandsafety/search/query_builder.py
====================================
Boolean query construction — Brand Safety search stage

Every query is ``(<identity OR-group>) (<topic OR-group>) <exclusions>``:

    - the identity group quotes every identifier of the entity profile
      (name, handle, channel fragments, aliases)
    - three topic groups are issued: broad controversy terms, severe
      phrase terms, and benign identity anchors. The anchors give the
      disambiguator non-controversial reference text to confirm identity.
    - exclusion terms strip known near-homoglyph noise ("alias", ...)

Three rich queries replace dozens of single-keyword searches to keep
provider quota usage low.
"""

from brandsafety.config import SEARCH_EXCLUSION_TERMS
from brandsafety.models import CreatorEntityProfile

CONTROVERSY_TERMS: tuple[str, ...] = (
    "allegations", "accused", "controversy", "scandal", "drama", "grooming",
    "harassment", "racist", "lawsuit", "misconduct", "exposed", "apology",
    "fraud", "complaint", "backlash",
)

SEVERE_PHRASES: tuple[str, ...] = (
    "sexual misconduct", "police investigation", "hate speech",
    "grooming allegations", "minor-related allegations", "cancelled",
    "criminal charges",
)

IDENTITY_ANCHORS: tuple[str, ...] = (
    "YouTuber", "influencer", "streamer", "creator", "profile", "interview",
    "biography", "channel", "popular YouTuber",
)


def _quote(term: str) -> str:
    return '"' + term.replace('"', '\\"') + '"'


def _or_group(terms: tuple[str, ...] | list[str], quote_phrases: bool = True) -> str:
    parts = []
    for term in terms:
        if quote_phrases and " " in term:
            parts.append(_quote(term))
        else:
            parts.append(term)
    return "(" + " OR ".join(parts) + ")"


def build_identity_group(profile: CreatorEntityProfile) -> str:
    """Quoted OR-group over the profile's identifiers."""
    identifiers: list[str] = []
    for identifier in (profile.primary_name, *profile.identifiers):
        identifier = identifier.strip()
        if identifier and identifier not in identifiers:
            identifiers.append(identifier)
    return "(" + " OR ".join(_quote(i) for i in identifiers) + ")"


def build_query_list(
    profile: CreatorEntityProfile,
    exclusions: tuple[str, ...] = SEARCH_EXCLUSION_TERMS,
) -> list[str]:
    """
    Build the consolidated boolean queries for a creator.

    Exclusion terms that match one of the creator's own identifiers are
    not applied, so a creator literally named "Alias" is still searchable.
    """
    identity = build_identity_group(profile)
    own = {i.lower() for i in profile.identifiers} | {profile.primary_name.lower()}
    negatives = " ".join(f"-{term}" for term in exclusions if term.lower() not in own)

    queries = [
        f"{identity} {_or_group(CONTROVERSY_TERMS)}",
        f"{identity} {_or_group(SEVERE_PHRASES)}",
        f"{identity} {_or_group(IDENTITY_ANCHORS)}",
    ]
    if negatives:
        queries = [f"{q} {negatives}" for q in queries]
    return queries
