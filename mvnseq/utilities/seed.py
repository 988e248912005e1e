from typing import List, Optional, Union
import torch


class SeedGenerator:
    """
    Reproducible seed manager for the synthetic data generators.

    Holds one CPU `torch.Generator` seeded from a base seed and hands out
    independent child generators, e.g. one per simulated group.
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Parameters
        ----------
        seed : int, optional
            Base seed. Randomized via torch.initial_seed() if None.
        """
        self._base_seed: int = int(seed if seed is not None else torch.initial_seed())
        self._generator = torch.Generator().manual_seed(self._base_seed)
        self._last_split_seeds: List[int] = []

    def split(self, n: int) -> List[torch.Generator]:
        """Create `n` reproducible generators derived from the parent generator."""
        new_seeds = torch.randint(0, 2**62, (n,), dtype=torch.int64, generator=self._generator)
        self._last_split_seeds = new_seeds.tolist()
        return [torch.Generator().manual_seed(int(s)) for s in new_seeds]

    def get(self) -> torch.Generator:
        return self._generator

    def last_split(self) -> List[int]:
        """Seeds used by the most recent `split`."""
        return list(self._last_split_seeds)

    def __repr__(self) -> str:
        return f"SeedGenerator(seed={self._base_seed})"


def as_generator(seed: Union[None, int, SeedGenerator, torch.Generator]) -> torch.Generator:
    """Resolve a seed-like argument to a torch.Generator."""
    if isinstance(seed, torch.Generator):
        return seed
    if isinstance(seed, SeedGenerator):
        return seed.get()
    return SeedGenerator(seed).get()
