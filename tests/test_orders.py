"""Tests for orders: listing, simulated payment and status transitions."""
import pytest

from collabotree.extensions import db
from collabotree.models import Contract, HireRequest, HireStatus, Order, OrderStatus


def _set_status(client, order_id, user, status):
    return client.patch(f'/api/orders/{order_id}/status', json={'status': status}, headers=user.headers)


class TestOrderQueries:
    def test_parties_list_their_orders(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        for party in (deal.buyer, deal.student):
            items = client.get('/api/orders/mine', headers=party.headers).get_json()['data']['items']
            assert [o['id'] for o in items] == [deal.order_id]
        assert client.get('/api/orders/mine', headers=factory.buyer().headers).get_json()['data']['items'] == []

    def test_admin_sees_all(self, client, factory):
        factory.accepted_hire(signed=True)
        factory.accepted_hire(signed=True)
        data = client.get('/api/orders/mine', headers=factory.admin().headers).get_json()['data']
        assert data['pagination']['total'] == 2

    def test_role_filter(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        data = client.get('/api/orders/mine?role=student', headers=deal.buyer.headers).get_json()['data']
        assert data['items'] == []

    def test_order_detail_includes_contract(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        data = client.get(f'/api/orders/{deal.order_id}', headers=deal.buyer.headers).get_json()['data']
        assert data['contract']['id'] == deal.contract_id
        assert data['hire_request_id'] == deal.hire_id

    def test_outsider_forbidden(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        assert client.get(f'/api/orders/{deal.order_id}', headers=factory.buyer().headers).status_code == 403


class TestCreateOrder:
    def _accepted_without_order(self, app, factory):
        student = factory.student()
        buyer = factory.buyer()
        service_id = factory.service(student, price_cents=3000)
        with app.app_context():
            hire = HireRequest(buyer_id=buyer.id, student_id=student.id, service_id=service_id,
                               price_cents=3000, status=HireStatus.ACCEPTED)
            db.session.add(hire)
            db.session.commit()
            return student, buyer, hire.id

    def test_repairs_missing_order(self, app, client, factory):
        student, buyer, hire_id = self._accepted_without_order(app, factory)
        resp = client.post('/api/orders', json={'hire_request_id': hire_id}, headers=buyer.headers)
        assert resp.status_code == 201
        data = resp.get_json()['data']
        assert data['price_cents'] == 3000
        assert data['status'] == 'PENDING'
        assert data['contract']['platform_fee_cents'] == 300

    def test_only_buyer(self, app, client, factory):
        student, buyer, hire_id = self._accepted_without_order(app, factory)
        resp = client.post('/api/orders', json={'hire_request_id': hire_id}, headers=student.headers)
        assert resp.status_code == 403

    def test_existing_order_conflicts(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        resp = client.post('/api/orders', json={'hire_request_id': deal.hire_id}, headers=deal.buyer.headers)
        assert resp.status_code == 409
        assert resp.get_json()['code'] == 'CONFLICT'

    def test_pending_request_is_invalid_state(self, client, factory):
        buyer = factory.buyer()
        hire_id = factory.hire(buyer, factory.service(factory.student()))
        resp = client.post('/api/orders', json={'hire_request_id': hire_id}, headers=buyer.headers)
        assert resp.status_code == 409
        assert resp.get_json()['code'] == 'INVALID_STATE'


class TestPayOrder:
    def test_buyer_pays_into_escrow(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        resp = client.patch(f'/api/orders/{deal.order_id}/pay', json={'payment_reference': 'REF-1'},
                            headers=deal.buyer.headers)
        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['status'] == 'PAID'
        assert data['paid_at'] is not None
        assert data['contract']['payment_status'] == 'PAID'
        assert data['contract']['payout_status'] == 'READY_FOR_RELEASE'
        assert data['contract']['status'] == 'ACTIVE'
        assert data['contract']['payment_reference'] == 'REF-1'
        assert data['contract']['escrow_holder'] == 'COLLABOTREE_PLATFORM'

    def test_student_cannot_pay(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        resp = client.patch(f'/api/orders/{deal.order_id}/pay', json={}, headers=deal.student.headers)
        assert resp.status_code == 403

    def test_pay_twice(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        client.patch(f'/api/orders/{deal.order_id}/pay', json={}, headers=deal.buyer.headers)
        resp = client.patch(f'/api/orders/{deal.order_id}/pay', json={}, headers=deal.buyer.headers)
        assert resp.status_code == 409
        assert resp.get_json()['code'] == 'INVALID_STATE'


class TestStatusTransitions:
    def test_happy_path(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        assert _set_status(client, deal.order_id, deal.buyer, 'PAID').status_code == 200
        assert _set_status(client, deal.order_id, deal.student, 'IN_PROGRESS').status_code == 200
        assert _set_status(client, deal.order_id, deal.student, 'DELIVERED').status_code == 200
        resp = _set_status(client, deal.order_id, deal.buyer, 'COMPLETED')
        assert resp.status_code == 200
        assert resp.get_json()['data']['completed_at'] is not None

    def test_paid_via_status_records_escrow(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        _set_status(client, deal.order_id, deal.buyer, 'PAID')
        contract = factory.fetch(Contract, deal.contract_id)
        assert contract.payment_status.value == 'PAID'
        assert contract.payout_status.value == 'READY_FOR_RELEASE'

    @pytest.mark.parametrize('actor, status', [
        ('student', 'PAID'), ('student', 'COMPLETED'),
        ('buyer', 'IN_PROGRESS'), ('buyer', 'DELIVERED'),
        ('outsider', 'CANCELLED'),
    ])
    def test_role_rules(self, client, factory, actor, status):
        deal = factory.accepted_hire(signed=True)
        users = {'student': deal.student, 'buyer': deal.buyer, 'outsider': factory.buyer()}
        resp = _set_status(client, deal.order_id, users[actor], status)
        assert resp.status_code == 403

    def test_admin_may_set_any_allowed_transition(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        admin = factory.admin()
        assert _set_status(client, deal.order_id, admin, 'PAID').status_code == 200
        assert _set_status(client, deal.order_id, admin, 'IN_PROGRESS').status_code == 200

    def test_skipping_steps_is_invalid_state(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        resp = _set_status(client, deal.order_id, deal.student, 'DELIVERED')
        assert resp.status_code == 409
        assert resp.get_json()['code'] == 'INVALID_STATE'

    def test_unknown_status(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        assert _set_status(client, deal.order_id, deal.buyer, 'SHIPPED').status_code == 400
        assert _set_status(client, deal.order_id, deal.buyer, 'PENDING').status_code == 400

    def test_terminal_orders_stay_put(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        _set_status(client, deal.order_id, deal.buyer, 'CANCELLED')
        for status, who in (('PAID', deal.buyer), ('IN_PROGRESS', deal.student), ('CANCELLED', deal.buyer)):
            assert _set_status(client, deal.order_id, who, status).status_code == 409
        assert factory.fetch(Order, deal.order_id).status == OrderStatus.CANCELLED

    def test_cancel_unpaid_order_cancels_contract(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        resp = _set_status(client, deal.order_id, deal.student, 'CANCELLED')
        assert resp.status_code == 200
        assert resp.get_json()['data']['cancelled_at'] is not None
        contract = factory.fetch(Contract, deal.contract_id)
        assert contract.status.value == 'CANCELLED'
        assert contract.payment_status.value == 'PENDING'

    def test_cancel_paid_order_refunds_escrow(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        client.patch(f'/api/orders/{deal.order_id}/pay', json={}, headers=deal.buyer.headers)
        _set_status(client, deal.order_id, deal.buyer, 'CANCELLED')

        contract = factory.fetch(Contract, deal.contract_id)
        assert contract.status.value == 'CANCELLED'
        assert contract.payment_status.value == 'REFUNDED'
        assert contract.payout_status.value == 'AWAITING'

    def test_other_party_notified(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        client.post('/api/notifications/read-all', headers=deal.student.headers)
        _set_status(client, deal.order_id, deal.buyer, 'PAID')
        count = client.get('/api/notifications/unread-count', headers=deal.student.headers).get_json()['data']
        assert count == {'count': 1}

    def test_closed_order_allows_new_hire(self, client, factory):
        deal = factory.accepted_hire(signed=True)
        _set_status(client, deal.order_id, deal.buyer, 'CANCELLED')
        resp = client.post('/api/hires', json={'service_id': deal.service_id}, headers=deal.buyer.headers)
        assert resp.status_code == 201
