"""
Pytest fixtures for the CollaboTree API tests.

Helpers open a short app context of their own and hand back plain ids, so no
app context is held while the test client makes requests.
"""
from types import SimpleNamespace

import pytest

from collabotree import create_app
from collabotree.extensions import db
from collabotree.models import Role, Service, User, VerificationStatus
from collabotree.utils.tokens import generate_access_token


@pytest.fixture
def app():
    app = create_app('testing')
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class Factory:
    def __init__(self, app, client):
        self.app = app
        self.client = client
        self._seq = 0

    def _next(self):
        self._seq += 1
        return self._seq

    def user(self, role=Role.BUYER, name=None, verified=False, active=True, password='password123'):
        n = self._next()
        with self.app.app_context():
            user = User(
                email=f"{role.value.lower()}{n}@collabotree.io",
                name=name or f"{role.value.title()} {n}",
                role=role,
                skills=[],
                is_active=active,
                is_verified=verified,
                verification_status=VerificationStatus.APPROVED if verified else VerificationStatus.NONE,
            )
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            token = generate_access_token(user)
            return SimpleNamespace(
                id=user.id,
                email=user.email,
                password=password,
                token=token,
                headers={'Authorization': f'Bearer {token}'},
            )

    def student(self, **kwargs):
        return self.user(role=Role.STUDENT, **kwargs)

    def buyer(self, **kwargs):
        return self.user(role=Role.BUYER, **kwargs)

    def admin(self, **kwargs):
        return self.user(role=Role.ADMIN, **kwargs)

    def service(self, owner, price_cents=5000, title=None, is_active=True, is_top_selection=False):
        with self.app.app_context():
            service = Service(
                owner_id=owner.id,
                title=title or f"Service {self._next()}",
                description="Fast and friendly",
                price_cents=price_cents,
                is_active=is_active,
                is_top_selection=is_top_selection,
            )
            db.session.add(service)
            db.session.commit()
            return service.id

    def hire(self, buyer, service_id, **payload):
        payload.setdefault('message', 'Can you help me?')
        resp = self.client.post('/api/hires', json={'service_id': service_id, **payload}, headers=buyer.headers)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['data']['id']

    def accepted_hire(self, price_cents=5000, signed=False):
        """Student, buyer and an accepted hire request with its order and contract.

        ``signed=True`` also has both parties sign the contract, which buyer
        checkout requires.
        """
        student = self.student()
        buyer = self.buyer()
        service_id = self.service(student, price_cents=price_cents)
        hire_id = self.hire(buyer, service_id)
        resp = self.client.post(f'/api/hires/{hire_id}/accept', headers=student.headers)
        assert resp.status_code == 200, resp.get_json()
        data = resp.get_json()['data']
        if signed:
            for party in (buyer, student):
                self.sign(data['contract']['id'], party)
        return SimpleNamespace(
            student=student,
            buyer=buyer,
            service_id=service_id,
            hire_id=hire_id,
            order_id=data['order']['id'],
            contract_id=data['contract']['id'],
            thread_id=data['thread_id'],
        )

    def sign(self, contract_id, user):
        resp = self.client.post(f'/api/contracts/{contract_id}/sign', json={'signature': f'signed by {user.id}'},
                                headers=user.headers)
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()['data']

    def fetch(self, model, object_id):
        """Load a detached row for assertions on its columns."""
        with self.app.app_context():
            obj = db.session.get(model, object_id)
            if obj is not None:
                db.session.expunge(obj)
            return obj

    def count(self, model, **filters):
        with self.app.app_context():
            return model.query.filter_by(**filters).count()


@pytest.fixture
def factory(app, client):
    return Factory(app, client)
