import django.core.validators
from django.db import migrations, models


def type_depuis_groupe(apps, schema_editor):
    # paiements existants : frais par séance si le groupe facture à la séance
    Paiement = apps.get_model("soutien", "Paiement")
    Paiement.objects.filter(groupe__frais_seance__gt=0).update(type_paiement="SESSION_FEE")


class Migration(migrations.Migration):

    dependencies = [
        ("soutien", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="paiement",
            name="type_paiement",
            field=models.CharField(
                choices=[
                    ("MONTHLY_FEE", "Frais mensuels (cycle)"),
                    ("SESSION_FEE", "Frais par séance"),
                    ("REGISTRATION_FEE", "Frais d'inscription"),
                ],
                default="MONTHLY_FEE",
                max_length=20,
            ),
        ),
        migrations.AlterField(
            model_name="paiement",
            name="cycle_index",
            field=models.PositiveIntegerField(
                blank=True,
                null=True,
                validators=[django.core.validators.MinValueValidator(1)],
            ),
        ),
        migrations.RunPython(type_depuis_groupe, migrations.RunPython.noop),
    ]
