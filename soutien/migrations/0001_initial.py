import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Eleve",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("nom", models.CharField(max_length=80)),
                ("prenom", models.CharField(max_length=80)),
                ("telephone", models.CharField(blank=True, max_length=30)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ["nom", "prenom"],
            },
        ),
        migrations.CreateModel(
            name="Enseignant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("nom", models.CharField(max_length=80)),
                ("prenom", models.CharField(max_length=80)),
                ("telephone", models.CharField(blank=True, max_length=30)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("is_active", models.BooleanField(default=True)),
                ("user", models.OneToOneField(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="enseignant_profile",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "ordering": ["nom", "prenom"],
            },
        ),
        migrations.CreateModel(
            name="Groupe",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("nom", models.CharField(max_length=120)),
                ("matiere", models.CharField(blank=True, max_length=120)),
                ("frais_seance", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("frais_mensuel", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("taille_cycle", models.PositiveSmallIntegerField(
                    blank=True, null=True,
                    validators=[django.core.validators.MinValueValidator(1)],
                )),
                ("delai_paiement_jours", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("enseignant", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="groupes",
                    to="soutien.enseignant",
                )),
            ],
            options={
                "ordering": ["nom"],
            },
        ),
        migrations.AddConstraint(
            model_name="groupe",
            constraint=models.UniqueConstraint(fields=("enseignant", "nom"), name="unique_groupe_par_enseignant_nom"),
        ),
        migrations.CreateModel(
            name="GroupeEleve",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("date_entree", models.DateField(default=django.utils.timezone.localdate)),
                ("is_active", models.BooleanField(default=True)),
                ("eleve", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="groupes_suivis",
                    to="soutien.eleve",
                )),
                ("groupe", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="membres",
                    to="soutien.groupe",
                )),
            ],
            options={
                "ordering": ["groupe__nom", "eleve__nom"],
            },
        ),
        migrations.AddConstraint(
            model_name="groupeeleve",
            constraint=models.UniqueConstraint(fields=("groupe", "eleve"), name="unique_eleve_par_groupe"),
        ),
        migrations.CreateModel(
            name="Seance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("date", models.DateField()),
                ("heure_debut", models.TimeField(blank=True, null=True)),
                ("titre", models.CharField(blank=True, max_length=200)),
                ("statut", models.CharField(
                    choices=[("SCHEDULED", "Planifiée"), ("COMPLETED", "Terminée"), ("CANCELLED", "Annulée")],
                    default="SCHEDULED",
                    max_length=10,
                )),
                ("groupe", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="seances",
                    to="soutien.groupe",
                )),
            ],
            options={
                "ordering": ["date", "id"],
            },
        ),
        migrations.AddIndex(
            model_name="seance",
            index=models.Index(fields=["groupe", "statut"], name="seance_groupe_statut_idx"),
        ),
        migrations.CreateModel(
            name="Presence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("statut", models.CharField(
                    choices=[("PRESENT", "Présent"), ("ABSENT", "Absent"), ("EXCUSED", "Excusé"), ("LATE", "En retard")],
                    default="PRESENT",
                    max_length=10,
                )),
                ("eleve", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="presences",
                    to="soutien.eleve",
                )),
                ("seance", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="presences",
                    to="soutien.seance",
                )),
            ],
            options={
                "ordering": ["seance__date", "seance__id", "id"],
            },
        ),
        migrations.AddConstraint(
            model_name="presence",
            constraint=models.UniqueConstraint(fields=("seance", "eleve"), name="unique_presence_seance_eleve"),
        ),
        migrations.CreateModel(
            name="Paiement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("cycle_index", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ("montant", models.DecimalField(decimal_places=2, max_digits=10)),
                ("statut", models.CharField(
                    choices=[("PENDING", "En attente"), ("PAID", "Payé"), ("OVERDUE", "En retard")],
                    default="PENDING",
                    max_length=10,
                )),
                ("date_echeance", models.DateField()),
                ("date_paiement", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("eleve", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="paiements",
                    to="soutien.eleve",
                )),
                ("enseignant", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="paiements",
                    to="soutien.enseignant",
                )),
                ("groupe", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="paiements",
                    to="soutien.groupe",
                )),
            ],
            options={
                "ordering": ["cycle_index", "id"],
            },
        ),
        migrations.AddConstraint(
            model_name="paiement",
            constraint=models.UniqueConstraint(
                fields=("eleve", "groupe", "cycle_index"),
                name="unique_paiement_eleve_groupe_cycle",
            ),
        ),
        migrations.AddIndex(
            model_name="paiement",
            index=models.Index(fields=["groupe", "statut"], name="paiement_groupe_statut_idx"),
        ),
        migrations.CreateModel(
            name="RelancePaiement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("canal", models.CharField(
                    choices=[("AVIS", "Avis"), ("SMS", "SMS"), ("EMAIL", "Email")],
                    default="AVIS",
                    max_length=10,
                )),
                ("message", models.CharField(blank=True, max_length=255)),
                ("sent_at", models.DateTimeField(auto_now_add=True)),
                ("paiement", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="relances",
                    to="soutien.paiement",
                )),
            ],
            options={
                "ordering": ["-sent_at"],
            },
        ),
    ]
