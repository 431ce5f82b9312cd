# soutien/admin.py
from django.contrib import admin, messages
from django.utils import timezone

from .models import (
    Enseignant, Eleve,
    Groupe, GroupeEleve,
    Seance, Presence,
    Paiement, RelancePaiement,
)
from .services.agregats import generate_group_payments
from .services.tarifs import MODE_AUCUN, MODE_SEANCE, fee_policy_for_group


# =========================
# Personnes
# =========================
@admin.register(Enseignant)
class EnseignantAdmin(admin.ModelAdmin):
    list_display = ("nom", "prenom", "telephone", "email", "is_active")
    list_filter = ("is_active",)
    search_fields = ("nom", "prenom", "email", "telephone")


@admin.register(Eleve)
class EleveAdmin(admin.ModelAdmin):
    list_display = ("nom", "prenom", "telephone", "email", "is_active")
    list_filter = ("is_active",)
    search_fields = ("nom", "prenom", "email", "telephone")


# =========================
# Groupes
# =========================
class GroupeEleveInline(admin.TabularInline):
    model = GroupeEleve
    extra = 0
    autocomplete_fields = ("eleve",)


@admin.action(description="💰 Générer les paiements en attente")
def generer_paiements(modeladmin, request, queryset):
    total = 0
    for groupe in queryset:
        total += generate_group_payments(groupe)
    messages.success(request, f"{total} paiement(s) généré(s).")


@admin.register(Groupe)
class GroupeAdmin(admin.ModelAdmin):
    list_display = ("nom", "enseignant", "matiere", "frais_seance", "frais_mensuel", "cycle", "is_active")
    list_filter = ("is_active", "enseignant")
    search_fields = ("nom", "matiere")
    inlines = [GroupeEleveInline]
    actions = [generer_paiements]

    @admin.display(description="Facturation")
    def cycle(self, obj):
        p = fee_policy_for_group(obj)
        if p.mode == MODE_AUCUN:
            return "—"
        if p.mode == MODE_SEANCE:
            return f"{p.montant_par_cycle} / séance"
        return f"{p.montant_par_cycle} / {p.taille_cycle} séances"


# =========================
# Séances & présences
# =========================
class PresenceInline(admin.TabularInline):
    model = Presence
    extra = 0
    autocomplete_fields = ("eleve",)


@admin.register(Seance)
class SeanceAdmin(admin.ModelAdmin):
    list_display = ("groupe", "date", "heure_debut", "statut")
    list_filter = ("statut", "groupe")
    date_hierarchy = "date"
    inlines = [PresenceInline]


# =========================
# Paiements
# =========================
@admin.action(description="✅ Marquer comme payé")
def marquer_paye(modeladmin, request, queryset):
    today = timezone.localdate()
    n = 0
    for p in queryset.exclude(statut=Paiement.PAID):
        p.marquer_paye(date=today)
        n += 1
    messages.success(request, f"{n} paiement(s) marqué(s) payé(s).")


class RelancePaiementInline(admin.TabularInline):
    model = RelancePaiement
    extra = 0
    readonly_fields = ("canal", "message", "sent_at")


@admin.register(Paiement)
class PaiementAdmin(admin.ModelAdmin):
    list_display = ("eleve", "groupe", "type_paiement", "cycle_index", "montant", "statut", "date_echeance", "date_paiement")
    list_filter = ("statut", "type_paiement", "groupe")
    search_fields = ("eleve__nom", "eleve__prenom", "groupe__nom")
    date_hierarchy = "date_echeance"
    actions = [marquer_paye]
    inlines = [RelancePaiementInline]
