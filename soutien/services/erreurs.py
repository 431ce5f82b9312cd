# soutien/services/erreurs.py


class PaiementError(Exception):
    pass


class ConfigurationError(PaiementError):
    """
    Groupe sans frais par séance ni frais mensuel.
    Le moteur ne la lève jamais en calcul : il retombe sur "rien à payer".
    """
    pass


class DataUnavailableError(PaiementError):
    """
    Lecture impossible (séances, présences, paiements, groupe).
    Propagée pour un calcul élève unique ; les agrégations la replient en EN_ATTENTE.
    """
    pass
