"""Tests for the admin API: guard, user management and dashboard stats."""
import pytest


class TestAdminGuard:
    def test_anonymous(self, client):
        assert client.get('/api/admin/stats').status_code == 401

    @pytest.mark.parametrize('role', ['student', 'buyer'])
    def test_non_admin(self, client, factory, role):
        user = getattr(factory, role)()
        resp = client.get('/api/admin/stats', headers=user.headers)
        assert resp.status_code == 403
        assert resp.get_json()['code'] == 'FORBIDDEN'


class TestUsers:
    def test_list_and_filter(self, client, factory):
        admin = factory.admin()
        factory.student(name='Ada Student')
        factory.buyer(name='Ben Buyer')

        data = client.get('/api/admin/users?role=STUDENT', headers=admin.headers).get_json()['data']
        assert [u['name'] for u in data['items']] == ['Ada Student']
        assert 'email' in data['items'][0]

        data = client.get('/api/admin/users?q=ben', headers=admin.headers).get_json()['data']
        assert [u['name'] for u in data['items']] == ['Ben Buyer']

    def test_suspend_and_activate(self, client, factory):
        admin = factory.admin()
        buyer = factory.buyer()

        resp = client.post(f'/api/admin/users/{buyer.id}/suspend', headers=admin.headers)
        assert resp.get_json()['data']['is_active'] is False
        login = client.post('/api/auth/login', json={'email': buyer.email, 'password': buyer.password})
        assert login.status_code == 403

        resp = client.post(f'/api/admin/users/{buyer.id}/activate', headers=admin.headers)
        assert resp.get_json()['data']['is_active'] is True
        login = client.post('/api/auth/login', json={'email': buyer.email, 'password': buyer.password})
        assert login.status_code == 200

    def test_cannot_suspend_self_or_admins(self, client, factory):
        admin = factory.admin()
        other_admin = factory.admin()
        assert client.post(f'/api/admin/users/{admin.id}/suspend', headers=admin.headers).status_code == 409
        assert client.post(f'/api/admin/users/{other_admin.id}/suspend', headers=admin.headers).status_code == 403

    def test_services_listing_includes_inactive(self, client, factory):
        admin = factory.admin()
        student = factory.student()
        factory.service(student, is_active=False)
        factory.service(student)
        data = client.get('/api/admin/services', headers=admin.headers).get_json()['data']
        assert data['pagination']['total'] == 2
        data = client.get('/api/admin/services?active=false', headers=admin.headers).get_json()['data']
        assert data['pagination']['total'] == 1


class TestStats:
    def test_dashboard_counts_money(self, client, factory):
        admin = factory.admin()
        released = factory.accepted_hire(price_cents=5000)
        held = factory.accepted_hire(price_cents=2000)
        factory.hire(factory.buyer(), factory.service(factory.student(verified=True)))

        for contract_id in (released.contract_id, held.contract_id):
            client.post(f'/api/admin/contracts/{contract_id}/mark-paid', json={}, headers=admin.headers)
        client.post(f'/api/admin/contracts/{released.contract_id}/release', headers=admin.headers)

        stats = client.get('/api/admin/stats', headers=admin.headers).get_json()['data']
        assert stats['users'] == {'STUDENT': 3, 'BUYER': 3, 'ADMIN': 1}
        assert stats['verified_students'] == 1
        assert stats['active_services'] == 3
        assert stats['hire_requests']['ACCEPTED'] == 2
        assert stats['hire_requests']['PENDING'] == 1
        assert stats['orders']['COMPLETED'] == 1
        assert stats['orders']['PAID'] == 1
        assert stats['escrow_held_cents'] == 2000
        assert stats['released_payouts_cents'] == 4500
        assert stats['platform_revenue_cents'] == 500
