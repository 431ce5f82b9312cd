# soutien/services/tarifs.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.conf import settings

from .erreurs import ConfigurationError

logger = logging.getLogger(__name__)

TAILLE_CYCLE_DEFAUT = 4

MODE_SEANCE = "SEANCE"
MODE_CYCLE = "CYCLE"
MODE_AUCUN = "AUCUN"


def _D(x, default=Decimal("0.00")) -> Decimal:
    if x is None:
        return default
    try:
        d = Decimal(str(x).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        return default
    if not d.is_finite():
        return default
    return d


def taille_cycle_defaut() -> int:
    return int(getattr(settings, "PAIEMENTS_TAILLE_CYCLE_DEFAUT", TAILLE_CYCLE_DEFAUT))


@dataclass(frozen=True)
class PolitiqueFrais:
    montant_par_cycle: Decimal
    taille_cycle: int
    mode: str

    @property
    def est_facturable(self) -> bool:
        return self.montant_par_cycle > Decimal("0.00")


def resolve_fee_policy(frais_seance, frais_mensuel, taille_cycle=None, strict=False) -> PolitiqueFrais:
    """
    Unité de facturation d'un groupe.

    - frais_seance > 0  -> chaque séance suivie est un cycle (taille 1)
    - sinon frais_mensuel > 0 -> un cycle = `taille_cycle` séances suivies,
      facturé en entier (jamais divisé par séance)
    - sinon -> rien à payer (montant 0, taille par défaut)
    """
    seance = _D(frais_seance)
    mensuel = _D(frais_mensuel)

    if seance > 0:
        return PolitiqueFrais(montant_par_cycle=seance, taille_cycle=1, mode=MODE_SEANCE)

    taille = int(taille_cycle or 0)
    if taille < 1:
        taille = taille_cycle_defaut()

    if mensuel > 0:
        return PolitiqueFrais(montant_par_cycle=mensuel, taille_cycle=taille, mode=MODE_CYCLE)

    if strict:
        raise ConfigurationError("Le groupe doit avoir des frais par séance ou des frais mensuels.")

    return PolitiqueFrais(montant_par_cycle=Decimal("0.00"), taille_cycle=taille_cycle_defaut(), mode=MODE_AUCUN)


def fee_policy_for_group(groupe) -> PolitiqueFrais:
    politique = resolve_fee_policy(groupe.frais_seance, groupe.frais_mensuel, groupe.taille_cycle)
    if not politique.est_facturable:
        logger.warning("Configuration de paiement manquante pour le groupe %s", groupe.pk)
    return politique
