# soutien/services/cycles.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressionCycle:
    total: int
    taille_cycle: int
    cycles_completes: int
    seances_cycle_courant: int

    @property
    def sur_frontiere(self) -> bool:
        return self.total > 0 and self.seances_cycle_courant == 0

    @property
    def seances_affichees(self) -> int:
        # sur une frontière, on montre le cycle qui vient d'être bouclé (4/4 et pas 0/4)
        if self.sur_frontiere:
            return self.taille_cycle
        return self.seances_cycle_courant


def accumulate_cycles(dates_suivies, taille_cycle: int) -> ProgressionCycle:
    """
    Découpe les séances suivies (PRESENT, ordre chronologique) en cycles de `taille_cycle`.
    Seul le nombre compte ; l'ordre est vérifié pour garder un historique cohérent.
    """
    if taille_cycle < 1:
        raise ValueError(f"taille_cycle invalide: {taille_cycle}")

    total = 0
    precedente = None
    for d in dates_suivies:
        if precedente is not None and d < precedente:
            raise ValueError("Les séances suivies doivent être triées par date croissante.")
        precedente = d
        total += 1

    return ProgressionCycle(
        total=total,
        taille_cycle=taille_cycle,
        cycles_completes=total // taille_cycle,
        seances_cycle_courant=total % taille_cycle,
    )
