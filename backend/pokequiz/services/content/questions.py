"""Deck builder: turns the cached species pool into question records."""

import itertools
import random
from typing import Callable, Dict, List, Optional, Sequence

from pokequiz.errors import ContentUnavailable
from pokequiz.models import (
    ChronoOrderQuestion,
    CryQuestion,
    DexNumberQuestion,
    GameMode,
    IdentityQuestion,
    NumberIdentityQuestion,
    Question,
    StatBattleQuestion,
    TextIdentityQuestion,
    TypeQuestion,
)
from .pokeapi import Species, SpeciesPool, species_count

CRY_URL = 'https://raw.githubusercontent.com/PokeAPI/cries/main/cries/pokemon/latest/{dex_id}.ogg'
CHOICES = 4
CHRONO_SIZE = 3
CHRONO_SEPARATOR = ' → '

STAT_LABELS = {'hp': 'HP', 'attack': 'Attack', 'defense': 'Defense', 'speed': 'Speed'}

MODE_QUESTION_TYPES: Dict[str, Sequence[str]] = {
    GameMode.CLASSIC: ('WHO_IS_THIS', 'GUESS_TYPE', 'STATS_BATTLE', 'DEX_NUMBER'),
    GameMode.ORTHOGRAPH: ('WHO_IS_THIS_TEXT',),
    GameMode.SHADOW: ('WHO_IS_THIS_TEXT',),
    GameMode.SURVIVAL: ('WHO_IS_THIS_TEXT',),
    GameMode.MARATHON: ('WHO_IS_THIS_TEXT',),
    GameMode.CRY: ('GUESS_CRY',),
    GameMode.POKEDEX: ('DEX_NUMBER', 'WHO_IS_NUMBER', 'ORDER_CHRONO'),
}


class PokemonQuizContent:
    """Content provider backed by a :class:`SpeciesPool`.

    ``generate_questions`` loads any missing generation first, so the first
    deck of a cold process can take a while.
    """

    def __init__(self, pool: SpeciesPool, rng: Optional[random.Random] = None) -> None:
        self.pool = pool
        self.rng = rng or random.Random()
        self._builders: Dict[str, Callable[[Species, List[Species], str], Question]] = {
            'WHO_IS_THIS': self._who_is_this,
            'WHO_IS_THIS_TEXT': self._who_is_this_text,
            'GUESS_TYPE': self._guess_type,
            'DEX_NUMBER': self._dex_number,
            'WHO_IS_NUMBER': self._who_is_number,
            'ORDER_CHRONO': self._order_chrono,
            'STATS_BATTLE': self._stats_battle,
            'GUESS_CRY': self._guess_cry,
        }

    def load_generations(self, generations) -> None:
        self.pool.load_generations(generations)

    def species_count(self, generation: int) -> int:
        return species_count(generation)

    def generate_questions(self, count: int, mode: str = GameMode.CLASSIC, generations=None) -> List[Question]:
        generations = list(generations or [1])
        self.load_generations(generations)
        pool = self.pool.get(generations)
        if not pool:
            raise ContentUnavailable()

        if mode == GameMode.MARATHON:
            # One question per species, in dex order
            return [self._marathon(species) for species in pool[:count]]

        types = MODE_QUESTION_TYPES.get(mode, MODE_QUESTION_TYPES[GameMode.CLASSIC])
        deck = []
        for _ in range(count):
            question_type = self.rng.choice(types)
            main = self.rng.choice(pool)
            deck.append(self._builders[question_type](main, pool, mode))
        return deck

    # ---- helpers ----

    def _others(self, main: Species, pool: List[Species]) -> List[Species]:
        others = [s for s in pool if s.dex_id != main.dex_id]
        self.rng.shuffle(others)
        return others

    def _options(self, correct: str, candidates) -> tuple:
        """Correct value plus up to three distinct distractors, shuffled."""
        options = [correct]
        for value in candidates:
            if len(options) >= CHOICES:
                break
            if value not in options:
                options.append(value)
        self.rng.shuffle(options)
        return tuple(options)

    # ---- builders ----

    def _who_is_this(self, main, pool, mode):
        others = self._others(main, pool)
        return IdentityQuestion(
            subject=main.subject(),
            prompt='Who is this Pokémon?',
            answer=main.name,
            options=self._options(main.name, (s.name for s in others)),
        )

    def _who_is_this_text(self, main, pool, mode):
        return TextIdentityQuestion(
            subject=main.subject(),
            prompt='Who is this Pokémon?',
            answer=main.name,
            hide_sprite=mode == GameMode.SHADOW,
        )

    def _marathon(self, main):
        return TextIdentityQuestion(
            subject=main.subject(),
            prompt=f'Pokémon #{main.dex_id}',
            answer=main.name,
            progressive_reveal=True,
        )

    def _guess_type(self, main, pool, mode):
        others = self._others(main, pool)
        return TypeQuestion(
            subject=main.subject(),
            prompt=f'What is the type of {main.name}?',
            answer=main.type_label,
            options=self._options(main.type_label, (s.type_label for s in others)),
        )

    def _dex_number(self, main, pool, mode):
        others = self._others(main, pool)
        answer = f'{main.dex_id:03d}'
        return DexNumberQuestion(
            subject=main.subject(),
            prompt=f'What is the Pokédex number of {main.name}?',
            answer=answer,
            options=self._options(answer, (f'{s.dex_id:03d}' for s in others)),
        )

    def _who_is_number(self, main, pool, mode):
        others = self._others(main, pool)
        return NumberIdentityQuestion(
            subject=main.subject(),
            prompt=f'Who is Pokémon #{main.dex_id}?',
            answer=main.name,
            options=self._options(main.name, (s.name for s in others)),
        )

    def _order_chrono(self, main, pool, mode):
        selection = [main] + self._others(main, pool)[:CHRONO_SIZE - 1]
        ordered = sorted(selection, key=lambda s: s.dex_id)
        answer = CHRONO_SEPARATOR.join(s.name for s in ordered)
        wrong = [
            CHRONO_SEPARATOR.join(s.name for s in perm)
            for perm in itertools.permutations(selection)
        ]
        self.rng.shuffle(wrong)
        return ChronoOrderQuestion(
            subject=main.subject(),
            prompt='Put these Pokémon in Pokédex order!',
            answer=answer,
            options=self._options(answer, wrong),
            images=tuple(s.sprite for s in selection),
        )

    def _stats_battle(self, main, pool, mode):
        others = self._others(main, pool)
        if not others:
            return self._who_is_this(main, pool, mode)
        opponent = others[0]
        stat = self.rng.choice(list(STAT_LABELS))
        main_stat = main.stats.get(stat, 0)
        opponent_stat = opponent.stats.get(stat, 0)
        answer = main.name if main_stat >= opponent_stat else opponent.name
        options = [main.name, opponent.name]
        self.rng.shuffle(options)
        return StatBattleQuestion(
            subject=main.subject(),
            prompt=f'Who has more {STAT_LABELS[stat]}?',
            answer=answer,
            options=tuple(options),
            stat=stat,
            comparison=f'{main.name}: {main_stat} vs {opponent.name}: {opponent_stat}',
        )

    def _guess_cry(self, main, pool, mode):
        others = self._others(main, pool)
        return CryQuestion(
            subject=main.subject(),
            prompt='Whose cry is this?',
            answer=main.name,
            options=self._options(main.name, (s.name for s in others)),
            audio=CRY_URL.format(dex_id=main.dex_id),
        )
