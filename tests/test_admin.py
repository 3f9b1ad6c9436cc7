from models import db, Therapist
from tests.base import SalonTestCase


class TherapistAdminTests(SalonTestCase):

    def _create(self, **extra):
        body = {'initial': 'r', 'fullName': 'Ratna Sari', 'baseFeePerTreatment': 15000}
        body.update(extra)
        return self.client.post('/admin/therapists', json=body)

    def test_percent_is_stored_as_fraction(self):
        resp = self._create(commissionPercent=12)
        self.assertEqual(resp.status_code, 201)
        data = resp.get_json()['data']
        self.assertEqual(data['initial'], 'R')
        self.assertAlmostEqual(data['commissionRate'], 0.12)
        self.assertEqual(data['commissionPercent'], 12)
        self.assertEqual(data['statusLabel'], 'Aktif')

    def test_fraction_accepted(self):
        data = self._create(commissionRate=0.15).get_json()['data']
        self.assertAlmostEqual(db.session.get(Therapist, data["id"]).commission_rate, 0.15)

    def test_rate_above_one_rejected(self):
        resp = self._create(commissionRate=12)
        self.assertEqual(resp.status_code, 400)

    def test_non_finite_rate_rejected(self):
        for raw in ('nan', 'inf', '-inf'):
            resp = self._create(commissionRate=raw)
            self.assertEqual(resp.status_code, 400)
            self.assertIn('commissionRate', resp.get_json()['error'])
        self.assertEqual(self._create(commissionPercent='nan').status_code, 400)
        self.assertEqual(Therapist.query.count(), 0)

    def test_initial_max_three_chars(self):
        self.assertEqual(self._create(initial='ABCD').status_code, 400)

    def test_duplicate_initial(self):
        self._create(commissionRate=0.1)
        resp = self._create(commissionRate=0.1, fullName='Rina')
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(Therapist.query.count(), 1)

    def test_update_status(self):
        tid = self._create(commissionRate=0.1).get_json()['data']['id']
        resp = self.client.put(f'/admin/therapists/{tid}', json={'status': 'on_leave'})
        data = resp.get_json()['data']
        self.assertEqual(data['status'], 'on_leave')
        self.assertEqual(data['statusLabel'], 'Cuti')
        self.assertFalse(data['isActive'])
        resp = self.client.put(f'/admin/therapists/{tid}', json={'status': 'Aktif'})
        self.assertEqual(resp.status_code, 400)


class CustomerAdminTests(SalonTestCase):

    def test_create_and_duplicate_phone(self):
        resp = self.client.post('/admin/customers', json={'name': 'Siti', 'phone': '+628111'})
        self.assertEqual(resp.status_code, 201)
        resp = self.client.post('/admin/customers', json={'name': 'Sari', 'phone': '+628111'})
        self.assertEqual(resp.status_code, 409)

    def test_search(self):
        self.make_customer('Siti Aminah', '+628111222333')
        self.make_customer('Fatimah Zahra', '+628111222334')
        body = self.client.get('/admin/customers?q=fatimah').get_json()
        self.assertEqual([c['name'] for c in body['data']], ['Fatimah Zahra'])

    def test_delete_blocked_by_treatments(self):
        therapist = self.make_therapist()
        service = self.make_service()
        customer = self.make_customer()
        self.client.post('/treatments', json={
            'date': '2024-05-10', 'customerId': customer.id,
            'serviceId': service.id, 'therapistId': therapist.id,
        })
        resp = self.client.delete(f'/admin/customers/{customer.id}')
        self.assertEqual(resp.status_code, 400)

        other = self.make_customer('Aisyah', '+628999')
        self.assertEqual(self.client.delete(f'/admin/customers/{other.id}').status_code, 200)


class ServiceAdminTests(SalonTestCase):

    def test_create_and_validate(self):
        resp = self.client.post('/admin/services', json={
            'name': 'Creambath', 'category': 'Perawatan Rambut', 'normalPrice': 125000,
            'promoPrice': 100000, 'popularity': 8.5,
        })
        self.assertEqual(resp.status_code, 201)
        data = resp.get_json()['data']
        self.assertEqual(data['effectivePrice'], 100000)
        # popularitas dihitung dari treatment, bukan diisi admin
        self.assertEqual(data['popularity'], 0)

        resp = self.client.post('/admin/services', json={'name': 'X', 'normalPrice': 1000})
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post('/admin/services', json={'name': 'X', 'category': 'Y', 'normalPrice': -1})
        self.assertEqual(resp.status_code, 400)
