"""Tests for the hire request state machine."""
import pytest

from collabotree.models import ChatThread, Contract, HireRequest, HireStatus, Order, Service


class TestCreateHireRequest:
    def test_defaults_to_service_price(self, client, factory):
        student = factory.student()
        buyer = factory.buyer()
        service_id = factory.service(student, price_cents=5000)

        resp = client.post('/api/hires', json={'service_id': service_id, 'message': 'Hi'}, headers=buyer.headers)
        assert resp.status_code == 201
        data = resp.get_json()['data']
        assert data['status'] == 'PENDING'
        assert data['price_cents'] == 5000
        assert data['student']['id'] == student.id
        assert data['order_id'] is None

    def test_explicit_price(self, client, factory):
        student = factory.student()
        buyer = factory.buyer()
        service_id = factory.service(student)
        hire_id = factory.hire(buyer, service_id, price_cents=4200)
        assert factory.fetch(HireRequest, hire_id).price_cents == 4200

    def test_price_below_minimum(self, client, factory):
        service_id = factory.service(factory.student())
        buyer = factory.buyer()
        resp = client.post('/api/hires', json={'service_id': service_id, 'price_cents': 50}, headers=buyer.headers)
        assert resp.status_code == 400

    def test_missing_service(self, client, factory):
        buyer = factory.buyer()
        resp = client.post('/api/hires', json={'service_id': 999}, headers=buyer.headers)
        assert resp.status_code == 404

    def test_inactive_service(self, client, factory):
        service_id = factory.service(factory.student(), is_active=False)
        buyer = factory.buyer()
        resp = client.post('/api/hires', json={'service_id': service_id}, headers=buyer.headers)
        assert resp.status_code == 404

    def test_suspended_owner_service(self, client, factory):
        service_id = factory.service(factory.student(active=False))
        buyer = factory.buyer()
        resp = client.post('/api/hires', json={'service_id': service_id}, headers=buyer.headers)
        assert resp.status_code == 404
        assert resp.get_json()['code'] == 'NOT_FOUND'

    def test_cannot_hire_yourself(self, client, factory):
        student = factory.student()
        service_id = factory.service(student)
        resp = client.post('/api/hires', json={'service_id': service_id}, headers=student.headers)
        assert resp.status_code == 403

    def test_admin_cannot_hire(self, client, factory):
        service_id = factory.service(factory.student())
        admin = factory.admin()
        resp = client.post('/api/hires', json={'service_id': service_id}, headers=admin.headers)
        assert resp.status_code == 403

    def test_duplicate_pending_conflicts(self, client, factory):
        service_id = factory.service(factory.student())
        buyer = factory.buyer()
        factory.hire(buyer, service_id)
        resp = client.post('/api/hires', json={'service_id': service_id}, headers=buyer.headers)
        assert resp.status_code == 409
        assert resp.get_json()['code'] == 'CONFLICT'

    def test_other_buyers_may_request_same_service(self, client, factory):
        service_id = factory.service(factory.student())
        factory.hire(factory.buyer(), service_id)
        factory.hire(factory.buyer(), service_id)
        assert factory.count(HireRequest, service_id=service_id) == 2

    def test_accepted_with_open_order_blocks_new_request(self, client, factory):
        deal = factory.accepted_hire()
        resp = client.post('/api/hires', json={'service_id': deal.service_id}, headers=deal.buyer.headers)
        assert resp.status_code == 409

    def test_student_is_notified(self, client, factory):
        student = factory.student()
        service_id = factory.service(student)
        factory.hire(factory.buyer(), service_id)
        notes = client.get('/api/notifications', headers=student.headers).get_json()['data']['items']
        assert notes[0]['type'] == 'HIRE_REQUEST'


class TestAcceptHireRequest:
    def test_accept_creates_order_contract_and_thread(self, client, factory):
        deal = factory.accepted_hire(price_cents=5000)

        hire = factory.fetch(HireRequest, deal.hire_id)
        assert hire.status == HireStatus.ACCEPTED
        assert hire.responded_at is not None

        order = factory.fetch(Order, deal.order_id)
        assert order.price_cents == 5000
        assert order.status.value == 'PENDING'
        assert len(order.order_number) == 4
        assert 1000 <= int(order.order_number) <= 9999

        contract = factory.fetch(Contract, deal.contract_id)
        assert contract.status.value == 'PENDING'
        assert contract.hire_request_id == deal.hire_id
        assert contract.order_id == deal.order_id
        assert contract.title == factory.fetch(Service, deal.service_id).title
        assert order.hire_request_id == deal.hire_id
        assert factory.count(Order, hire_request_id=deal.hire_id) == 1
        assert factory.count(Contract, hire_request_id=deal.hire_id) == 1
        assert factory.count(ChatThread, hire_request_id=deal.hire_id) == 1
        assert contract.payment_status.value == 'PENDING'
        assert contract.payout_status.value == 'AWAITING'
        assert contract.platform_fee_cents == 500
        assert contract.student_payout_cents == 4500

        thread = factory.fetch(ChatThread, deal.thread_id)
        assert thread.hire_request_id == deal.hire_id
        assert thread.msg_count == 0

    def test_fee_rounds_half_up(self, client, factory):
        deal = factory.accepted_hire(price_cents=1005)
        contract = factory.fetch(Contract, deal.contract_id)
        # 10% of 1005 is 100.5
        assert contract.platform_fee_cents == 101
        assert contract.student_payout_cents == 904

    def test_non_owner_forbidden(self, client, factory):
        service_id = factory.service(factory.student())
        buyer = factory.buyer()
        hire_id = factory.hire(buyer, service_id)
        intruder = factory.student()

        for user in (intruder, buyer, factory.admin()):
            resp = client.post(f'/api/hires/{hire_id}/accept', headers=user.headers)
            assert resp.status_code == 403
        assert factory.fetch(HireRequest, hire_id).status == HireStatus.PENDING

    def test_accept_twice_is_invalid_state(self, client, factory):
        deal = factory.accepted_hire()
        resp = client.post(f'/api/hires/{deal.hire_id}/accept', headers=deal.student.headers)
        assert resp.status_code == 409
        assert resp.get_json()['code'] == 'INVALID_STATE'
        assert factory.count(Order, hire_request_id=deal.hire_id) == 1
        assert factory.count(Contract, hire_request_id=deal.hire_id) == 1

    def test_accept_after_reject_is_invalid_state(self, client, factory):
        student = factory.student()
        hire_id = factory.hire(factory.buyer(), factory.service(student))
        client.post(f'/api/hires/{hire_id}/reject', headers=student.headers)
        resp = client.post(f'/api/hires/{hire_id}/accept', headers=student.headers)
        assert resp.status_code == 409
        assert resp.get_json()['code'] == 'INVALID_STATE'
        assert factory.count(Order, hire_request_id=hire_id) == 0

    def test_missing_request(self, client, factory):
        student = factory.student()
        assert client.post('/api/hires/12345/accept', headers=student.headers).status_code == 404

    def test_both_parties_notified(self, client, factory):
        deal = factory.accepted_hire()
        for party in (deal.buyer, deal.student):
            titles = [n['title'] for n in
                      client.get('/api/notifications', headers=party.headers).get_json()['data']['items']]
            assert any('accepted' in t.lower() or 'order' in t.lower() for t in titles)


class TestRejectAndCancel:
    def test_reject(self, client, factory):
        student = factory.student()
        hire_id = factory.hire(factory.buyer(), factory.service(student))
        resp = client.post(f'/api/hires/{hire_id}/reject', headers=student.headers)
        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'REJECTED'
        assert factory.count(Order, hire_request_id=hire_id) == 0

    def test_reject_by_stranger(self, client, factory):
        hire_id = factory.hire(factory.buyer(), factory.service(factory.student()))
        resp = client.post(f'/api/hires/{hire_id}/reject', headers=factory.student().headers)
        assert resp.status_code == 403

    def test_buyer_cancels(self, client, factory):
        buyer = factory.buyer()
        hire_id = factory.hire(buyer, factory.service(factory.student()))
        resp = client.post(f'/api/hires/{hire_id}/cancel', headers=buyer.headers)
        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'CANCELLED'

    def test_student_cannot_cancel(self, client, factory):
        student = factory.student()
        hire_id = factory.hire(factory.buyer(), factory.service(student))
        assert client.post(f'/api/hires/{hire_id}/cancel', headers=student.headers).status_code == 403

    def test_buyer_deletes_pending(self, client, factory):
        buyer = factory.buyer()
        hire_id = factory.hire(buyer, factory.service(factory.student()))
        resp = client.delete(f'/api/hires/{hire_id}', headers=buyer.headers)
        assert resp.status_code == 200
        assert factory.fetch(HireRequest, hire_id) is None

    def test_cannot_delete_accepted(self, client, factory):
        deal = factory.accepted_hire()
        resp = client.delete(f'/api/hires/{deal.hire_id}', headers=deal.buyer.headers)
        assert resp.status_code == 409


class TestTerminalStatuses:
    @pytest.mark.parametrize('first, actor', [
        ('accept', 'student'), ('reject', 'student'), ('cancel', 'buyer'),
    ])
    def test_no_transition_out_of_terminal(self, client, factory, first, actor):
        student = factory.student()
        buyer = factory.buyer()
        hire_id = factory.hire(buyer, factory.service(student))
        users = {'student': student, 'buyer': buyer}

        assert client.post(f'/api/hires/{hire_id}/{first}', headers=users[actor].headers).status_code == 200
        status = factory.fetch(HireRequest, hire_id).status

        for action, who in (('accept', student), ('reject', student), ('cancel', buyer)):
            resp = client.post(f'/api/hires/{hire_id}/{action}', headers=who.headers)
            assert resp.status_code == 409
        assert factory.fetch(HireRequest, hire_id).status == status


class TestListing:
    def test_sent_and_received_boxes(self, client, factory):
        student = factory.student()
        buyer = factory.buyer()
        hire_id = factory.hire(buyer, factory.service(student))

        sent = client.get('/api/hires?box=sent', headers=buyer.headers).get_json()['data']['items']
        received = client.get('/api/hires?box=received', headers=student.headers).get_json()['data']['items']
        assert [h['id'] for h in sent] == [hire_id]
        assert [h['id'] for h in received] == [hire_id]
        assert client.get('/api/hires?box=sent', headers=student.headers).get_json()['data']['items'] == []

    def test_status_filter(self, client, factory):
        student = factory.student()
        buyer = factory.buyer()
        factory.hire(buyer, factory.service(student))
        data = client.get('/api/hires?status=accepted', headers=buyer.headers).get_json()['data']
        assert data['items'] == []
        assert client.get('/api/hires?status=bogus', headers=buyer.headers).status_code == 400

    def test_outsider_cannot_view(self, client, factory):
        hire_id = factory.hire(factory.buyer(), factory.service(factory.student()))
        assert client.get(f'/api/hires/{hire_id}', headers=factory.buyer().headers).status_code == 403
        assert client.get(f'/api/hires/{hire_id}', headers=factory.admin().headers).status_code == 200
