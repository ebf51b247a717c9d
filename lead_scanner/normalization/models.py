"""Field resolution tables for the normalization layer.

Each source kind maps every canonical Company field to an ordered fallback
chain. A chain entry is either a dotted path into the raw record
(``"siege.code_postal"``) or a tuple of paths whose values are joined with a
space (``("nom", "prenom")``); the first entry yielding a non-blank value
wins. Chains are plain data so they can be read and tested in isolation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

FieldSource = Union[str, Tuple[str, ...]]


class SourceKind(str, Enum):
    """Record layouts understood by the normalizer."""

    REGISTRY_SEARCH = "registry_search"
    HTML_SCRAPE = "html_scrape"
    KEYED_API = "keyed_api"
    # Company field names, as produced by Company.model_dump()
    CANONICAL = "canonical"


@dataclass(frozen=True)
class FieldMap:
    """Fallback chains for one source kind.

    Attributes:
        chains: Canonical field name -> ordered candidate sources
        defaults: Value used when a whole chain comes up empty
        reads_has_website: Whether the layout carries a confirmed has_website flag
    """

    chains: Dict[str, Sequence[FieldSource]]
    defaults: Dict[str, Any] = field(default_factory=dict)
    reads_has_website: bool = False

    def chain(self, field_name: str) -> Sequence[FieldSource]:
        return self.chains.get(field_name, ())


def lookup(record: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts; None when any step is missing."""
    current = record
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def resolve(record: Dict[str, Any], chain: Sequence[FieldSource]) -> Optional[Any]:
    """Return the first non-blank value produced by a fallback chain.

    For joined entries the first path must be present; the remaining parts
    are appended when available.
    """
    for source in chain:
        if isinstance(source, tuple):
            parts = [lookup(record, path) for path in source]
            if _is_blank(parts[0]):
                continue
            return " ".join(str(part).strip() for part in parts if not _is_blank(part))

        value = lookup(record, source)
        if not _is_blank(value):
            return value
    return None


REGISTRY_SEARCH_FIELDS = FieldMap(
    chains={
        "registry_id": ("unite_legale.siren", "siren"),
        "name": (
            "unite_legale.denomination",
            "denomination",
            "nom_raison_sociale",
            "nom_complet",
            ("unite_legale.nom", "unite_legale.prenom"),
            ("nom", "prenom"),
            "siege.enseigne_1",
        ),
        "city": ("siege.libelle_commune", "siege.commune"),
        "postal_code": ("siege.code_postal",),
        "created_at": (
            "unite_legale.date_creation",
            "date_creation",
            "unite_legale.date_debut_activite",
            "date_debut_activite",
        ),
        "sector_code": ("unite_legale.activite_principale", "activite_principale"),
    },
    defaults={"name": "Unknown"},
)

KEYED_API_FIELDS = FieldMap(
    chains={
        "registry_id": ("siren",),
        "name": ("denomination", "nom_entreprise", "name"),
        "city": ("siege.ville", "etablissement.ville", "ville"),
        "postal_code": ("siege.code_postal", "etablissement.code_postal", "code_postal"),
        "created_at": ("date_creation", "dateCreation"),
        "sector_code": ("code_naf", "codeNaf"),
        "website_url": ("site_web", "website"),
        "email": ("email",),
        "phone": ("telephone", "phone"),
    },
    defaults={"name": "Unknown"},
)

HTML_SCRAPE_FIELDS = FieldMap(
    chains={
        "registry_id": ("registry_id",),
        "name": ("name",),
        "city": ("city",),
        "postal_code": ("postal_code",),
        "created_at": ("creation_date",),
        "sector_code": ("sector_code",),
        "website_url": ("website_url",),
        "email": ("email",),
        "phone": ("phone",),
    },
    defaults={"name": "Unknown"},
)

CANONICAL_FIELDS = FieldMap(
    chains={
        name: (name,)
        for name in (
            "registry_id", "name", "city", "postal_code", "created_at",
            "sector_code", "website_url", "email", "phone",
        )
    },
    defaults={"name": "Unknown"},
    reads_has_website=True,
)

SOURCE_FIELD_MAPS: Dict[str, FieldMap] = {
    SourceKind.REGISTRY_SEARCH.value: REGISTRY_SEARCH_FIELDS,
    SourceKind.KEYED_API.value: KEYED_API_FIELDS,
    SourceKind.HTML_SCRAPE.value: HTML_SCRAPE_FIELDS,
    SourceKind.CANONICAL.value: CANONICAL_FIELDS,
}
