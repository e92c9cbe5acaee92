"""End-to-end marketplace flows through the HTTP API."""
from collabotree.models import Contract, HireRequest, HireStatus, Order, Service, User

PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8BQDwAEhQGAhKmMIQAAAABJRU5ErkJggg=="


def test_hire_to_payout(client, factory):
    """$50 service: request, accept, pay into escrow, release once."""
    student = factory.student()
    buyer = factory.buyer()
    admin = factory.admin()
    service_id = factory.service(student, price_cents=5000)

    hire_id = factory.hire(buyer, service_id)
    accepted = client.post(f'/api/hires/{hire_id}/accept', headers=student.headers).get_json()['data']
    order_id = accepted['order']['id']
    contract_id = accepted['contract']['id']

    assert accepted['order']['price_cents'] == 5000
    assert accepted['contract']['payment_status'] == 'PENDING'
    assert accepted['contract']['payout_status'] == 'AWAITING'

    paid = client.post(f'/api/admin/contracts/{contract_id}/mark-paid', json={}, headers=admin.headers)
    assert paid.get_json()['data']['payout_status'] == 'READY_FOR_RELEASE'

    released = client.post(f'/api/admin/contracts/{contract_id}/release', headers=admin.headers)
    assert released.status_code == 200
    assert released.get_json()['data']['payout_status'] == 'RELEASED'
    assert released.get_json()['data']['released_at'] is not None

    again = client.post(f'/api/admin/contracts/{contract_id}/release', headers=admin.headers)
    assert again.status_code == 409

    contract = factory.fetch(Contract, contract_id)
    assert contract.payout_status.value == 'RELEASED'
    assert factory.fetch(Order, order_id).status.value == 'COMPLETED'
    wallet = client.get('/api/wallet', headers=student.headers).get_json()['data']
    assert wallet['balance_cents'] == 4500


def test_rejection_then_resubmit(client, factory):
    """A rejected request creates nothing and frees the buyer to ask again."""
    student = factory.student()
    buyer = factory.buyer()
    service_id = factory.service(student)

    hire_id = factory.hire(buyer, service_id)
    duplicate = client.post('/api/hires', json={'service_id': service_id}, headers=buyer.headers)
    assert duplicate.status_code == 409

    client.post(f'/api/hires/{hire_id}/reject', headers=student.headers)
    assert factory.fetch(HireRequest, hire_id).status == HireStatus.REJECTED
    assert factory.count(Order, hire_request_id=hire_id) == 0
    assert factory.count(Contract, hire_request_id=hire_id) == 0

    resubmitted = client.post('/api/hires', json={'service_id': service_id}, headers=buyer.headers)
    assert resubmitted.status_code == 201
    assert resubmitted.get_json()['data']['id'] != hire_id


def test_verification_review_round_trip(client, factory):
    """Reject, re-upload, approve; the badge then shows on the student's services."""
    student = factory.student()
    admin = factory.admin()
    service_id = factory.service(student)

    client.post('/api/verification/id-card', json={'id_card_url': PNG_DATA_URL}, headers=student.headers)
    user = factory.fetch(User, student.id)
    assert user.is_verified is False
    assert user.has_uploaded_id is True

    client.post(f'/api/admin/verifications/{student.id}/reject', json={'reason': 'Expired card'},
                headers=admin.headers)
    assert factory.fetch(User, student.id).has_uploaded_id is False

    resp = client.post('/api/verification/id-card', json={'id_card_url': PNG_DATA_URL}, headers=student.headers)
    assert resp.get_json()['data']['status'] == 'PENDING'
    assert resp.get_json()['data']['rejection_reason'] is None

    client.post(f'/api/admin/verifications/{student.id}/approve', headers=admin.headers)
    user = factory.fetch(User, student.id)
    assert user.is_verified is True
    assert user.verified_at is not None

    service = client.get(f'/api/services/{service_id}').get_json()['data']
    assert service['is_verified_seller'] is True
    assert service['owner']['is_verified'] is True
    assert factory.fetch(Service, service_id).is_active is True
