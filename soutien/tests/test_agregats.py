# soutien/tests/test_agregats.py
"""
Tests des agrégations : statut global élève, stats groupe / enseignant, génération en lot
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest import mock

from django.db import connections
from django.test import SimpleTestCase, TestCase, TransactionTestCase, override_settings
from django.utils import timezone

from soutien.models import Enseignant, GroupeEleve, Paiement
from soutien.services.agregats import (
    debut_periode,
    generate_group_payments,
    global_payment_stats,
    group_payment_stats,
    student_overall_status,
    student_payment_summaries,
)
from soutien.services.donnees import PaymentStore
from soutien.services.erreurs import DataUnavailableError
from soutien.services.statut import StatutCompte

from .utils import TODAY, DonneesSoutienMixin


class StoreEnPanne(PaymentStore):
    """Lecture des présences impossible pour certains élèves."""

    def __init__(self, eleves_en_panne):
        self.eleves_en_panne = set(eleves_en_panne)

    def list_present_attendance(self, eleve_id, seance_ids):
        if eleve_id in self.eleves_en_panne:
            raise DataUnavailableError("base indisponible")
        return super().list_present_attendance(eleve_id, seance_ids)


class StoreDesordonne(PaymentStore):
    """Séances renvoyées dans le désordre."""

    def list_completed_sessions(self, groupe_id):
        return list(reversed(super().list_completed_sessions(groupe_id)))


class ExecuteurSequentiel:
    def __init__(self):
        self.appels = 0

    def map(self, fn, items):
        self.appels += 1
        return map(fn, items)


class StatutGlobalEleveTest(DonneesSoutienMixin, TestCase):

    def test_worst_status_and_total_amount(self):
        g_ok = self.creer_groupe(frais_mensuel=Decimal("200.00"), taille_cycle=4)
        g_retard = self.creer_groupe(frais_seance=Decimal("50.00"))
        self.suivre(g_ok, 2)
        self.suivre(g_retard, 2)

        res = student_overall_status(self.eleve.pk, today=TODAY)
        self.assertEqual(len(res.etats), 2)
        self.assertEqual(res.statut, StatutCompte.EN_RETARD)
        self.assertEqual(res.montant_total, Decimal("100.00"))

    def test_sum_over_pending_and_overdue(self):
        g1 = self.creer_groupe(frais_mensuel=Decimal("200.00"), taille_cycle=4)
        g2 = self.creer_groupe(frais_seance=Decimal("50.00"))
        self.suivre(g1, 4)
        self.paiement(g1, 1, statut=Paiement.PENDING)
        self.suivre(g2, 1)

        res = student_overall_status(self.eleve.pk, [g1.pk, g2.pk], today=TODAY)
        self.assertEqual(res.statut, StatutCompte.EN_RETARD)
        self.assertEqual(res.montant_total, Decimal("250.00"))

    def test_no_group_is_up_to_date(self):
        res = student_overall_status(self.eleve.pk, today=TODAY)
        self.assertEqual(res.statut, StatutCompte.A_JOUR)
        self.assertEqual(res.montant_total, Decimal("0.00"))
        self.assertEqual(res.as_dict()["payment_statuses"], [])

    def test_inactive_membership_ignored(self):
        groupe = self.creer_groupe(frais_seance=Decimal("50.00"))
        self.suivre(groupe, 2)
        GroupeEleve.objects.filter(groupe=groupe).update(is_active=False)

        res = student_overall_status(self.eleve.pk, today=TODAY)
        self.assertEqual(res.etats, ())
        self.assertEqual(res.statut, StatutCompte.A_JOUR)

    def test_data_error_counts_as_pending(self):
        groupe = self.creer_groupe(frais_seance=Decimal("50.00"))
        self.suivre(groupe, 2)

        res = student_overall_status(self.eleve.pk, today=TODAY, store=StoreEnPanne([self.eleve.pk]))
        self.assertEqual(res.statut, StatutCompte.EN_ATTENTE)
        self.assertEqual(res.montant_total, Decimal("0.00"))

    def test_uses_given_executor(self):
        groupe = self.creer_groupe(frais_seance=Decimal("50.00"))
        self.suivre(groupe, 1)
        executeur = ExecuteurSequentiel()

        res = student_overall_status(self.eleve.pk, today=TODAY, executor=executeur)
        self.assertEqual(executeur.appels, 1)
        self.assertEqual(res.montant_total, Decimal("50.00"))


class StatsGroupeTest(DonneesSoutienMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.en_attente = self.creer_eleve(nom="Mansour", prenom="Yasmine")
        self.en_retard = self.creer_eleve(nom="Gharbi", prenom="Omar")
        self.inactif = self.creer_eleve(nom="Haddad", prenom="Rim")
        self.groupe = self.creer_groupe(
            eleves=[self.eleve, self.en_attente, self.en_retard],
            frais_mensuel=Decimal("200.00"),
            taille_cycle=4,
        )
        GroupeEleve.objects.create(groupe=self.groupe, eleve=self.inactif, is_active=False)

        # à jour : cycle 1 payé
        self.suivre(self.groupe, 4)
        self.paiement(self.groupe, 1, statut=Paiement.PAID)
        # en attente : cycle 1 PENDING non échu
        self.suivre(self.groupe, 4, eleve=self.en_attente)
        self.paiement(self.groupe, 1, statut=Paiement.PENDING, eleve=self.en_attente)
        # en retard : 8 séances, rien
        self.suivre(self.groupe, 8, eleve=self.en_retard)
        # inactif : ignoré
        self.suivre(self.groupe, 8, eleve=self.inactif)

    def test_group_rollup(self):
        stats = group_payment_stats(self.groupe, today=TODAY)

        self.assertEqual(stats.total_eleves, 3)
        self.assertEqual(stats.revenu_total, Decimal("200.00"))
        self.assertEqual(stats.cumul.a_jour, 1)
        self.assertEqual(stats.cumul.en_attente, 1)
        self.assertEqual(stats.cumul.en_retard, 1)
        self.assertEqual(stats.cumul.montant_en_attente, Decimal("200.00"))
        self.assertEqual(stats.cumul.montant_en_retard, Decimal("400.00"))
        self.assertEqual(stats.taux_recouvrement, Decimal("25.00"))

        data = stats.as_dict()
        self.assertEqual(data["collection_rate"], Decimal("25.00"))
        self.assertIsNone(data["period"])
        self.assertEqual(data["group_name"], self.groupe.nom)
        self.assertEqual(data["students_overdue"], 1)

    def test_failing_student_does_not_abort_rollup(self):
        stats = group_payment_stats(self.groupe, today=TODAY, store=StoreEnPanne([self.en_retard.pk]))

        self.assertEqual(stats.total_eleves, 3)
        self.assertEqual(stats.cumul.en_retard, 0)
        self.assertEqual(stats.cumul.en_attente, 2)
        self.assertEqual(stats.cumul.montant_en_attente, Decimal("200.00"))

    def test_global_stats_fold_groups(self):
        autre = self.creer_groupe(frais_seance=Decimal("50.00"))
        self.suivre(autre, 2)
        self.paiement(autre, 1, statut=Paiement.PAID)
        inactif = self.creer_groupe(frais_seance=Decimal("50.00"), is_active=False)
        self.suivre(inactif, 3)

        stats = global_payment_stats(self.enseignant, today=TODAY)

        self.assertEqual(stats.total_groupes, 2)
        self.assertEqual(stats.eleves_actifs, 4)
        self.assertEqual(stats.revenu_total, Decimal("250.00"))
        self.assertEqual(stats.cumul.a_jour, 1)
        self.assertEqual(stats.cumul.en_attente, 1)
        self.assertEqual(stats.cumul.en_retard, 2)
        self.assertEqual(stats.cumul.montant_en_retard, Decimal("450.00"))
        self.assertEqual(stats.as_dict()["students_with_overdue"], 2)
        # 250 / (250 + 200 + 450)
        self.assertEqual(stats.taux_recouvrement, Decimal("27.78"))

    def test_global_stats_other_enseignant_is_empty(self):
        autre = Enseignant.objects.create(nom="Karray", prenom="Nadia")
        stats = global_payment_stats(autre, today=TODAY)
        self.assertEqual(stats.total_groupes, 0)
        self.assertEqual(stats.revenu_total, Decimal("0.00"))
        self.assertEqual(stats.cumul.a_jour, 0)

    def test_generate_group_payments(self):
        n = generate_group_payments(self.groupe, today=TODAY)

        # en_retard : cycle 1 (un seul par appel) ; les autres sont couverts
        self.assertEqual(n, 1)
        p = Paiement.objects.get(eleve=self.en_retard)
        self.assertEqual(p.cycle_index, 1)
        self.assertEqual(p.enseignant, self.enseignant)
        self.assertEqual(p.date_echeance, TODAY + timedelta(days=30))
        self.assertFalse(Paiement.objects.filter(eleve=self.inactif).exists())

        self.assertEqual(generate_group_payments(self.groupe, today=TODAY), 1)
        self.assertEqual(generate_group_payments(self.groupe, today=TODAY), 0)

    def test_generate_skips_failing_student(self):
        n = generate_group_payments(self.groupe, today=TODAY, store=StoreEnPanne([self.en_retard.pk]))
        self.assertEqual(n, 0)

    def test_unordered_sessions_do_not_abort_rollup(self):
        stats = group_payment_stats(self.groupe, today=TODAY, store=StoreDesordonne())

        self.assertEqual(stats.total_eleves, 3)
        self.assertEqual(stats.cumul.en_attente, 3)
        self.assertEqual(stats.cumul.montant_en_attente, Decimal("0.00"))

    def test_revenue_by_period(self):
        def cree_le(paiement, jour):
            Paiement.objects.filter(pk=paiement.pk).update(
                created_at=timezone.make_aware(datetime(jour.year, jour.month, jour.day, 12, 0))
            )

        cree_le(Paiement.objects.get(eleve=self.eleve, statut=Paiement.PAID), date(2025, 12, 15))
        for montant, jour in ((Decimal("30.00"), date(2026, 3, 1)), (Decimal("20.00"), date(2026, 2, 10))):
            cree_le(self.inscription(montant), jour)

        self.assertEqual(group_payment_stats(self.groupe, today=TODAY).revenu_total, Decimal("250.00"))
        self.assertEqual(group_payment_stats(self.groupe, today=TODAY, periode="year").revenu_total, Decimal("50.00"))
        self.assertEqual(group_payment_stats(self.groupe, today=TODAY, periode="quarter").revenu_total, Decimal("50.00"))

        mois = group_payment_stats(self.groupe, today=TODAY, periode="month")
        self.assertEqual(mois.revenu_total, Decimal("30.00"))
        # 30 / (30 + 200 + 400)
        self.assertEqual(mois.taux_recouvrement, Decimal("4.76"))
        self.assertEqual(mois.as_dict()["period"], "month")

    def test_unknown_period(self):
        with self.assertRaises(ValueError):
            group_payment_stats(self.groupe, today=TODAY, periode="week")

    def inscription(self, montant):
        return Paiement.objects.create(
            eleve=self.eleve,
            groupe=self.groupe,
            type_paiement=Paiement.REGISTRATION_FEE,
            montant=montant,
            statut=Paiement.PAID,
            date_echeance=TODAY,
            date_paiement=TODAY,
        )


class PeriodeTest(SimpleTestCase):

    def test_period_start(self):
        self.assertEqual(debut_periode("month", date(2026, 5, 20)), date(2026, 5, 1))
        self.assertEqual(debut_periode("quarter", date(2026, 5, 20)), date(2026, 4, 1))
        self.assertEqual(debut_periode("quarter", date(2026, 12, 31)), date(2026, 10, 1))
        self.assertEqual(debut_periode("quarter", date(2026, 3, 2)), date(2026, 1, 1))
        self.assertEqual(debut_periode("year", date(2026, 5, 20)), date(2026, 1, 1))


class ResumesPaiementTest(DonneesSoutienMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.omar = self.creer_eleve(nom="Gharbi", prenom="Omar")
        self.groupe = self.creer_groupe(
            eleves=[self.eleve, self.omar],
            frais_mensuel=Decimal("200.00"),
            taille_cycle=4,
        )
        self.suivre(self.groupe, 8)
        paye = self.paiement(self.groupe, 1, statut=Paiement.PAID)
        paye.marquer_paye(date=date(2026, 2, 1))
        self.paiement(self.groupe, 2, statut=Paiement.PENDING)
        Paiement.objects.create(
            eleve=self.eleve,
            groupe=self.groupe,
            type_paiement=Paiement.REGISTRATION_FEE,
            montant=Decimal("30.00"),
            statut=Paiement.PAID,
            date_echeance=date(2026, 1, 5),
            date_paiement=date(2026, 1, 5),
        )
        self.suivre(self.groupe, 4, eleve=self.omar)

    def test_summaries(self):
        omar, amine = student_payment_summaries(self.groupe, today=TODAY)

        self.assertEqual(amine.nom, "Amine Trabelsi")
        self.assertEqual(amine.statut, StatutCompte.EN_ATTENTE)
        self.assertEqual(amine.total_du, Decimal("200.00"))
        self.assertEqual(amine.total_paye, Decimal("230.00"))
        self.assertEqual(amine.montant_en_retard, Decimal("0.00"))
        self.assertEqual(amine.seances_suivies, 4)
        self.assertEqual(amine.seances_par_cycle, 4)
        self.assertEqual(amine.prochaine_echeance, TODAY + timedelta(days=30))
        self.assertEqual(amine.dernier_paiement, date(2026, 2, 1))

        # cycle bouclé sans paiement : en retard, mais aucun montant enregistré
        self.assertEqual(omar.statut, StatutCompte.EN_RETARD)
        self.assertEqual(omar.total_du, Decimal("0.00"))
        self.assertIsNone(omar.prochaine_echeance)
        self.assertIsNone(omar.dernier_paiement)
        self.assertEqual(omar.as_dict()["payment_status"], "EN_RETARD")

    def test_overdue_records(self):
        Paiement.objects.filter(eleve=self.eleve, cycle_index=2).update(
            statut=Paiement.OVERDUE, date_echeance=date(2026, 2, 20)
        )
        amine = student_payment_summaries(self.groupe, today=TODAY)[1]

        self.assertEqual(amine.statut, StatutCompte.EN_RETARD)
        self.assertEqual(amine.montant_en_retard, Decimal("200.00"))
        self.assertEqual(amine.total_du, Decimal("200.00"))
        self.assertEqual(amine.prochaine_echeance, date(2026, 2, 20))

    def test_failing_student_gets_default_summary(self):
        omar, amine = student_payment_summaries(self.groupe, today=TODAY, store=StoreEnPanne([self.eleve.pk]))

        self.assertEqual(amine.nom, "Amine Trabelsi")
        self.assertEqual(amine.statut, StatutCompte.EN_ATTENTE)
        self.assertEqual(amine.total_paye, Decimal("0.00"))
        self.assertIsNone(amine.dernier_paiement)
        self.assertEqual(omar.statut, StatutCompte.EN_RETARD)


@override_settings(PAIEMENTS_GENERATION_AUTO=False)
class FanOutThreadPoolTest(DonneesSoutienMixin, TransactionTestCase):

    def test_worker_connections_are_closed(self):
        autre = self.creer_eleve()
        groupe = self.creer_groupe(eleves=[self.eleve, autre], frais_seance=Decimal("50.00"))
        self.suivre(groupe, 2)
        self.suivre(groupe, 1, eleve=autre)

        fermetures = []
        close_all = connections.close_all

        def enregistrer():
            fermetures.append(threading.get_ident())
            close_all()

        with mock.patch.object(connections, "close_all", side_effect=enregistrer):
            with ThreadPoolExecutor(max_workers=2) as pool:
                stats = group_payment_stats(groupe, today=TODAY, executor=pool)

        self.assertEqual(stats.cumul.en_retard, 2)
        self.assertEqual(stats.cumul.montant_en_retard, Decimal("150.00"))
        self.assertEqual(len(fermetures), 2)
        self.assertNotIn(threading.get_ident(), fermetures)

    def test_caller_connection_is_kept(self):
        groupe = self.creer_groupe(frais_seance=Decimal("50.00"))
        self.suivre(groupe, 1)

        with mock.patch.object(connections, "close_all") as close_all:
            res = student_overall_status(self.eleve.pk, today=TODAY, executor=ExecuteurSequentiel())

        close_all.assert_not_called()
        self.assertEqual(res.montant_total, Decimal("50.00"))
