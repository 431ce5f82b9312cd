# soutien/models.py
from datetime import date as date_cls
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from soutien.services.erreurs import ConfigurationError
from soutien.services.tarifs import resolve_fee_policy


# =========================
# Audit
# =========================
class AuditBase(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# =========================
# Personnes
# =========================
class Enseignant(AuditBase):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name="enseignant_profile"
    )
    nom = models.CharField(max_length=80)
    prenom = models.CharField(max_length=80)
    telephone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["nom", "prenom"]

    def __str__(self):
        return f"{self.nom} {self.prenom}"


class Eleve(AuditBase):
    nom = models.CharField(max_length=80)
    prenom = models.CharField(max_length=80)
    telephone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["nom", "prenom"]

    @property
    def nom_complet(self) -> str:
        return f"{self.prenom} {self.nom}".strip()

    @property
    def contact(self) -> str:
        return self.email or self.telephone or ""

    def __str__(self):
        return f"{self.nom} {self.prenom}"


# =========================
# Groupes (tarif = politique de facturation)
# =========================
class Groupe(AuditBase):
    """
    Groupe de soutien.
    Facturation à l'usage :
    - frais_seance renseigné -> chaque séance suivie est facturée
    - sinon frais_mensuel facturé toutes les `taille_cycle` séances suivies
    """
    enseignant = models.ForeignKey(Enseignant, on_delete=models.PROTECT, related_name="groupes")
    nom = models.CharField(max_length=120)
    matiere = models.CharField(max_length=120, blank=True)

    frais_seance = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    frais_mensuel = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    # vide => PAIEMENTS_TAILLE_CYCLE_DEFAUT
    taille_cycle = models.PositiveSmallIntegerField(
        null=True, blank=True,
        validators=[MinValueValidator(1)],
    )
    # vide => PAIEMENTS_DELAI_JOURS
    delai_paiement_jours = models.PositiveSmallIntegerField(null=True, blank=True)

    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["nom"]
        constraints = [
            models.UniqueConstraint(fields=["enseignant", "nom"], name="unique_groupe_par_enseignant_nom")
        ]

    def clean(self):
        try:
            resolve_fee_policy(self.frais_seance, self.frais_mensuel, self.taille_cycle, strict=True)
        except ConfigurationError as e:
            raise ValidationError({"frais_mensuel": str(e)})

    @property
    def delai_paiement(self) -> int:
        if self.delai_paiement_jours is not None:
            return int(self.delai_paiement_jours)
        return int(getattr(settings, "PAIEMENTS_DELAI_JOURS", 30))

    def __str__(self):
        return self.nom


class GroupeEleve(AuditBase):
    groupe = models.ForeignKey(Groupe, on_delete=models.CASCADE, related_name="membres")
    eleve = models.ForeignKey(Eleve, on_delete=models.CASCADE, related_name="groupes_suivis")
    date_entree = models.DateField(default=timezone.localdate)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["groupe__nom", "eleve__nom"]
        constraints = [
            models.UniqueConstraint(fields=["groupe", "eleve"], name="unique_eleve_par_groupe")
        ]

    def __str__(self):
        return f"{self.eleve} — {self.groupe}"


# =========================
# Séances & présences
# =========================
class Seance(AuditBase):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    STATUT_CHOICES = [
        (SCHEDULED, "Planifiée"),
        (COMPLETED, "Terminée"),
        (CANCELLED, "Annulée"),
    ]

    groupe = models.ForeignKey(Groupe, on_delete=models.PROTECT, related_name="seances")
    date = models.DateField()
    heure_debut = models.TimeField(null=True, blank=True)
    titre = models.CharField(max_length=200, blank=True)
    statut = models.CharField(max_length=10, choices=STATUT_CHOICES, default=SCHEDULED)

    class Meta:
        ordering = ["date", "id"]
        indexes = [
            models.Index(fields=["groupe", "statut"], name="seance_groupe_statut_idx"),
        ]

    def __str__(self):
        return f"{self.groupe.nom} {self.date} ({self.get_statut_display()})"


class Presence(AuditBase):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    EXCUSED = "EXCUSED"
    LATE = "LATE"
    STATUT_CHOICES = [
        (PRESENT, "Présent"),
        (ABSENT, "Absent"),
        (EXCUSED, "Excusé"),
        (LATE, "En retard"),
    ]

    seance = models.ForeignKey(Seance, on_delete=models.CASCADE, related_name="presences")
    eleve = models.ForeignKey(Eleve, on_delete=models.PROTECT, related_name="presences")
    statut = models.CharField(max_length=10, choices=STATUT_CHOICES, default=PRESENT)

    class Meta:
        ordering = ["seance__date", "seance__id", "id"]
        constraints = [
            models.UniqueConstraint(fields=["seance", "eleve"], name="unique_presence_seance_eleve")
        ]

    def __str__(self):
        return f"{self.eleve} {self.seance.date} {self.get_statut_display()}"


# =========================
# Paiements (un par cycle bouclé)
# =========================
class Paiement(AuditBase):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    STATUT_CHOICES = [
        (PENDING, "En attente"),
        (PAID, "Payé"),
        (OVERDUE, "En retard"),
    ]

    MONTHLY_FEE = "MONTHLY_FEE"
    SESSION_FEE = "SESSION_FEE"
    REGISTRATION_FEE = "REGISTRATION_FEE"
    TYPE_CHOICES = [
        (MONTHLY_FEE, "Frais mensuels (cycle)"),
        (SESSION_FEE, "Frais par séance"),
        (REGISTRATION_FEE, "Frais d'inscription"),
    ]

    eleve = models.ForeignKey(Eleve, on_delete=models.PROTECT, related_name="paiements")
    groupe = models.ForeignKey(Groupe, on_delete=models.PROTECT, related_name="paiements")
    enseignant = models.ForeignKey(
        Enseignant,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name="paiements"
    )

    type_paiement = models.CharField(max_length=20, choices=TYPE_CHOICES, default=MONTHLY_FEE)

    # ✅ cycle couvert explicite (1, 2, 3...) : pas de correspondance par position
    # vide pour les frais d'inscription (hors cycles)
    cycle_index = models.PositiveIntegerField(null=True, blank=True, validators=[MinValueValidator(1)])

    montant = models.DecimalField(max_digits=10, decimal_places=2)
    statut = models.CharField(max_length=10, choices=STATUT_CHOICES, default=PENDING)
    date_echeance = models.DateField()
    date_paiement = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["cycle_index", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["eleve", "groupe", "cycle_index"],
                name="unique_paiement_eleve_groupe_cycle",
            )
        ]
        indexes = [
            models.Index(fields=["groupe", "statut"], name="paiement_groupe_statut_idx"),
        ]

    def clean(self):
        if (self.montant or Decimal("0.00")) <= 0:
            raise ValidationError({"montant": "⚠️ Montant invalide."})
        if self.type_paiement == self.REGISTRATION_FEE:
            if self.cycle_index is not None:
                raise ValidationError({"cycle_index": "⚠️ Les frais d'inscription ne couvrent aucun cycle."})
        elif self.cycle_index is None:
            raise ValidationError({"cycle_index": "⚠️ Cycle obligatoire pour ce type de paiement."})

    def est_echu(self, today: date_cls = None) -> bool:
        today = today or timezone.localdate()
        return self.date_echeance < today

    def marquer_paye(self, date: date_cls = None, save=True):
        self.statut = self.PAID
        self.date_paiement = date or timezone.localdate()
        if save:
            self.save(update_fields=["statut", "date_paiement", "updated_at"])

    def __str__(self):
        objet = self.get_type_paiement_display() if self.cycle_index is None else f"cycle {self.cycle_index}"
        return f"{self.eleve} — {self.groupe} — {objet} ({self.get_statut_display()})"


class RelancePaiement(models.Model):
    CANAL_CHOICES = [("AVIS", "Avis"), ("SMS", "SMS"), ("EMAIL", "Email")]

    paiement = models.ForeignKey(Paiement, on_delete=models.CASCADE, related_name="relances")
    canal = models.CharField(max_length=10, choices=CANAL_CHOICES, default="AVIS")
    message = models.CharField(max_length=255, blank=True)
    sent_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-sent_at"]

    def __str__(self):
        return f"{self.canal} — {self.paiement} — {self.sent_at:%Y-%m-%d}"
