"""Question content: species data from PokeAPI and the deck builder."""
