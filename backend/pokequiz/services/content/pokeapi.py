"""PokeAPI client and the in-memory species cache it fills."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import requests

from pokequiz.models import Subject

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://pokeapi.co/api/v2'

# National dex ranges per generation
GENERATION_RANGES: Dict[int, Tuple[int, int]] = {
    1: (1, 151),
    2: (152, 251),
    3: (252, 386),
    4: (387, 493),
    5: (494, 649),
    6: (650, 721),
    7: (722, 809),
    8: (810, 905),
    9: (906, 1025),
}

TYPE_NAMES = {
    'fr': {
        'normal': 'Normal', 'fire': 'Feu', 'water': 'Eau', 'grass': 'Plante',
        'electric': 'Électrik', 'ice': 'Glace', 'fighting': 'Combat', 'poison': 'Poison',
        'ground': 'Sol', 'flying': 'Vol', 'psychic': 'Psy', 'bug': 'Insecte',
        'rock': 'Roche', 'ghost': 'Spectre', 'dragon': 'Dragon', 'dark': 'Ténèbres',
        'steel': 'Acier', 'fairy': 'Fée',
    },
}


@dataclass(frozen=True)
class Species:
    dex_id: int
    name: str
    generation: int
    types: Tuple[str, ...] = ()
    sprite: Optional[str] = None
    artwork: Optional[str] = None
    stats: Dict[str, int] = field(default_factory=dict, hash=False, compare=False)

    @property
    def type_label(self) -> str:
        return '/'.join(self.types)

    def subject(self) -> Subject:
        return Subject(dex_id=self.dex_id, name=self.name, sprite=self.artwork or self.sprite)


def species_count(generation: int) -> int:
    start, end = GENERATION_RANGES[generation]
    return end - start + 1


class PokeApiClient:
    """Fetch species data for a whole generation, ``batch_size`` requests at a time."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 10, language: str = 'fr',
                 session: Optional[requests.Session] = None, batch_size: int = 10) -> None:
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.language = language
        self.session = session or requests.Session()
        self.batch_size = batch_size

    def _get(self, url: str) -> dict:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def fetch_generation(self, generation: int) -> List[Species]:
        start, end = GENERATION_RANGES[generation]
        listing = self._get(f"{self.base_url}/pokemon?offset={start - 1}&limit={end - start + 1}")
        urls = [entry['url'] for entry in listing.get('results', [])]
        with ThreadPoolExecutor(max_workers=self.batch_size) as executor:
            return list(executor.map(lambda url: self._fetch_species(url, generation), urls))

    def _fetch_species(self, url: str, generation: int) -> Species:
        data = self._get(url)
        species = self._get(data['species']['url'])
        name = next(
            (n['name'] for n in species.get('names', []) if n['language']['name'] == self.language),
            data['name'].capitalize(),
        )
        sprites = data.get('sprites') or {}
        artwork = ((sprites.get('other') or {}).get('official-artwork') or {}).get('front_default')
        types = tuple(
            self.type_name(t['type']['name'])
            for t in sorted(data.get('types', []), key=lambda t: t.get('slot', 0))
        )
        return Species(
            dex_id=data['id'],
            name=name,
            generation=generation,
            types=types,
            sprite=sprites.get('front_default'),
            artwork=artwork,
            stats={s['stat']['name']: s['base_stat'] for s in data.get('stats', [])},
        )

    def type_name(self, key: str) -> str:
        return TYPE_NAMES.get(self.language, {}).get(key, key.capitalize())


class SpeciesPool:
    """Species cache keyed by generation, filled lazily from a client."""

    def __init__(self, client: Optional[PokeApiClient] = None) -> None:
        self.client = client
        self._by_generation: Dict[int, List[Species]] = {}
        self._lock = threading.Lock()

    def loaded_generations(self) -> List[int]:
        return sorted(self._by_generation)

    def add(self, generation: int, species: Iterable[Species]) -> None:
        with self._lock:
            self._by_generation[generation] = sorted(species, key=lambda s: s.dex_id)

    def load_generations(self, generations: Iterable[int]) -> None:
        """Fetch generations not cached yet. A failed generation is logged and skipped."""
        missing = [g for g in generations if g not in self._by_generation and g in GENERATION_RANGES]
        if not missing or self.client is None:
            return
        logger.info("Loading generations: %s", ', '.join(str(g) for g in missing))
        for generation in missing:
            try:
                species = self.client.fetch_generation(generation)
            except requests.RequestException as e:
                logger.error("Error loading generation %s: %s", generation, e)
                continue
            self.add(generation, species)
            logger.info("Loaded generation %s (%s species)", generation, len(species))

    def get(self, generations: Optional[Iterable[int]] = None) -> List[Species]:
        with self._lock:
            if not generations:
                keys = sorted(self._by_generation)
            else:
                keys = sorted(set(generations))
            pool = [s for g in keys for s in self._by_generation.get(g, [])]
        return sorted(pool, key=lambda s: s.dex_id)
