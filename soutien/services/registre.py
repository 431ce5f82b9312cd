# soutien/services/registre.py
from __future__ import annotations

from typing import Dict, List, Optional

from soutien.models import Paiement


class RegistrePaiements:
    """
    Vue des paiements d'un couple (élève, groupe), indexée par cycle_index.
    Un seul paiement retenu par cycle : le plus récent (id le plus grand).
    """

    def __init__(self, paiements):
        self._par_cycle: Dict[int, object] = {}
        # frais hors cycle (inscription) ignorés
        en_cycle = [p for p in paiements if p.cycle_index is not None]
        for p in sorted(en_cycle, key=lambda p: (p.cycle_index, p.pk or 0)):
            self._par_cycle[int(p.cycle_index)] = p

    def __len__(self):
        return len(self._par_cycle)

    def latest_payment(self):
        if not self._par_cycle:
            return None
        return self._par_cycle[max(self._par_cycle)]

    def payment_covering_cycle(self, cycle_index: int):
        return self._par_cycle.get(int(cycle_index))

    def is_settled(self, cycle_index: int) -> bool:
        p = self.payment_covering_cycle(cycle_index)
        return p is not None and p.statut == Paiement.PAID

    def settled_cycles(self, jusqu_a: int) -> int:
        return sum(1 for i in range(1, jusqu_a + 1) if self.is_settled(i))

    def unsettled_cycles(self, jusqu_a: int) -> List[int]:
        return [i for i in range(1, jusqu_a + 1) if not self.is_settled(i)]

    def uncovered_cycles(self, jusqu_a: int) -> List[int]:
        return [i for i in range(1, jusqu_a + 1) if i not in self._par_cycle]

    def paid_or_pending_count(self) -> int:
        return sum(1 for p in self._par_cycle.values() if p.statut in (Paiement.PAID, Paiement.PENDING))

    def next_uncovered_cycle(self, jusqu_a: int) -> Optional[int]:
        manquants = self.uncovered_cycles(jusqu_a)
        return manquants[0] if manquants else None
