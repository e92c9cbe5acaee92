import enum
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from collabotree.extensions import db


# Enums must match DB enum values (upper case, one enum per entity)
class Role(enum.Enum):
    STUDENT = "STUDENT"
    BUYER = "BUYER"
    ADMIN = "ADMIN"


class VerificationStatus(enum.Enum):
    NONE = "NONE"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class HireStatus(enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self):
        return self is not HireStatus.PENDING


class OrderStatus(enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    IN_PROGRESS = "IN_PROGRESS"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_open(self):
        return self not in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class ContractStatus(enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    REFUNDED = "REFUNDED"


class PayoutStatus(enum.Enum):
    AWAITING = "AWAITING"
    READY_FOR_RELEASE = "READY_FOR_RELEASE"
    RELEASED = "RELEASED"


class DisputeStatus(enum.Enum):
    OPEN = "OPEN"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"

    @property
    def is_open(self):
        return self in (DisputeStatus.OPEN, DisputeStatus.UNDER_REVIEW)


class NotificationType(enum.Enum):
    HIRE_REQUEST = "HIRE_REQUEST"
    ORDER_UPDATE = "ORDER_UPDATE"
    CONTRACT = "CONTRACT"
    DISPUTE = "DISPUTE"
    REVIEW = "REVIEW"
    SYSTEM = "SYSTEM"


def _enum_column(enum_cls, name, **kwargs):
    return db.Column(
        db.Enum(enum_cls, name=name, values_callable=lambda x: [e.value for e in x]),
        **kwargs
    )


def _iso(value):
    return value.isoformat() if value else None


# ---------------------- USER ----------------------
class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    role = _enum_column(Role, "role_enum", nullable=False)
    bio = db.Column(db.Text)
    university = db.Column(db.String(150))
    skills = db.Column(db.JSON, default=list)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Student verification
    is_verified = db.Column(db.Boolean, default=False, nullable=False)
    id_card_url = db.Column(db.Text, nullable=True)
    has_uploaded_id = db.Column(db.Boolean, default=False, nullable=False)
    verification_status = _enum_column(
        VerificationStatus, "verification_status_enum",
        default=VerificationStatus.NONE, nullable=False
    )
    verification_rejection_reason = db.Column(db.Text, nullable=True)
    id_uploaded_at = db.Column(db.DateTime, nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)

    last_seen = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    services = db.relationship('Service', back_populates='owner', foreign_keys='Service.owner_id')
    notifications = db.relationship('Notification', back_populates='user', cascade="all, delete-orphan")
    wallet_transactions = db.relationship('WalletTransaction', back_populates='user', cascade="all, delete-orphan")

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    @property
    def is_student(self):
        return self.role == Role.STUDENT

    def summary(self):
        return {
            'id': self.id,
            'name': self.name,
            'university': self.university,
            'is_verified': self.is_verified,
        }

    def to_dict(self, private=False):
        data = {
            'id': self.id,
            'name': self.name,
            'role': self.role.value,
            'bio': self.bio,
            'university': self.university,
            'skills': self.skills or [],
            'is_verified': self.is_verified,
            'verified_at': _iso(self.verified_at),
            'created_at': _iso(self.created_at),
        }
        if private:
            data.update({
                'email': self.email,
                'is_active': self.is_active,
                'has_uploaded_id': self.has_uploaded_id,
                'verification_status': self.verification_status.value,
                'last_seen': _iso(self.last_seen),
            })
        return data


# ---------------------- SERVICE ----------------------
class Service(db.Model):
    __tablename__ = 'services'

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)
    cover_image_url = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_top_selection = db.Column(db.Boolean, default=False, nullable=False)
    # Set when an admin takes the listing down; only an admin can lift it
    moderated_at = db.Column(db.DateTime, nullable=True)
    moderated_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = db.relationship('User', back_populates='services', foreign_keys=[owner_id])

    @property
    def is_moderated(self):
        return self.moderated_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'price_cents': self.price_cents,
            'cover_image_url': self.cover_image_url,
            'is_active': self.is_active,
            'is_top_selection': self.is_top_selection,
            'is_moderated': self.is_moderated,
            'owner': self.owner.summary() if self.owner else None,
            'is_verified_seller': bool(self.owner and self.owner.is_verified),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


# ---------------------- HIRE REQUEST ----------------------
class HireRequest(db.Model):
    __tablename__ = 'hire_requests'

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey('services.id'), nullable=False, index=True)
    message = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)
    status = _enum_column(HireStatus, "hire_status_enum", default=HireStatus.PENDING, nullable=False)
    responded_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    buyer = db.relationship('User', foreign_keys=[buyer_id])
    student = db.relationship('User', foreign_keys=[student_id])
    service = db.relationship('Service')
    order = db.relationship('Order', back_populates='hire_request', uselist=False)
    thread = db.relationship('ChatThread', back_populates='hire_request', uselist=False)

    def is_party(self, user_id):
        return user_id in (self.buyer_id, self.student_id)

    def to_dict(self):
        return {
            'id': self.id,
            'buyer': self.buyer.summary() if self.buyer else None,
            'student': self.student.summary() if self.student else None,
            'service': {
                'id': self.service.id,
                'title': self.service.title,
                'price_cents': self.service.price_cents,
            } if self.service else None,
            'message': self.message,
            'price_cents': self.price_cents,
            'status': self.status.value,
            'order_id': self.order.id if self.order else None,
            'thread_id': self.thread.id if self.thread else None,
            'responded_at': _iso(self.responded_at),
            'created_at': _iso(self.created_at),
        }


# ------------------ ORDER MODEL ------------------
class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(8), unique=True, nullable=False)
    hire_request_id = db.Column(db.Integer, db.ForeignKey('hire_requests.id'), unique=True, nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey('services.id'), nullable=False)
    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    price_cents = db.Column(db.Integer, nullable=False)
    status = _enum_column(OrderStatus, "order_status_enum", default=OrderStatus.PENDING, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    hire_request = db.relationship('HireRequest', back_populates='order')
    service = db.relationship('Service')
    buyer = db.relationship('User', foreign_keys=[buyer_id])
    student = db.relationship('User', foreign_keys=[student_id])
    contract = db.relationship('Contract', back_populates='order', uselist=False)
    reviews = db.relationship('Review', back_populates='order')
    disputes = db.relationship('Dispute', back_populates='order')

    def is_party(self, user_id):
        return user_id in (self.buyer_id, self.student_id)

    def to_dict(self):
        return {
            'id': self.id,
            'order_number': self.order_number,
            'hire_request_id': self.hire_request_id,
            'service': {'id': self.service.id, 'title': self.service.title} if self.service else None,
            'buyer': self.buyer.summary() if self.buyer else None,
            'student': self.student.summary() if self.student else None,
            'price_cents': self.price_cents,
            'status': self.status.value,
            'contract_id': self.contract.id if self.contract else None,
            'paid_at': _iso(self.paid_at),
            'completed_at': _iso(self.completed_at),
            'cancelled_at': _iso(self.cancelled_at),
            'created_at': _iso(self.created_at),
        }


# ---------------------- CONTRACT (escrow) ----------------------
class Contract(db.Model):
    __tablename__ = 'contracts'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), unique=True, nullable=False)
    hire_request_id = db.Column(db.Integer, db.ForeignKey('hire_requests.id'), unique=True, nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey('services.id'), nullable=False)
    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(120), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    platform_fee_cents = db.Column(db.Integer, nullable=False)
    student_payout_cents = db.Column(db.Integer, nullable=False)
    status = _enum_column(ContractStatus, "contract_status_enum", default=ContractStatus.PENDING, nullable=False)
    payment_status = _enum_column(PaymentStatus, "payment_status_enum", default=PaymentStatus.PENDING, nullable=False)
    payout_status = _enum_column(PayoutStatus, "payout_status_enum", default=PayoutStatus.AWAITING, nullable=False)
    is_signed_by_buyer = db.Column(db.Boolean, default=False, nullable=False)
    is_signed_by_student = db.Column(db.Boolean, default=False, nullable=False)
    signed_at = db.Column(db.DateTime, nullable=True)
    progress_status = db.Column(db.String(100), nullable=True)
    progress_notes = db.Column(db.Text, nullable=True)
    escrow_holder = db.Column(db.String(100), nullable=True)
    payment_reference = db.Column(db.String(100), nullable=True)
    escrowed_at = db.Column(db.DateTime, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    released_at = db.Column(db.DateTime, nullable=True)
    released_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = db.relationship('Order', back_populates='contract')
    buyer = db.relationship('User', foreign_keys=[buyer_id])
    student = db.relationship('User', foreign_keys=[student_id])
    released_by = db.relationship('User', foreign_keys=[released_by_id])
    signatures = db.relationship('ContractSignature', back_populates='contract', cascade="all, delete-orphan")
    progress_updates = db.relationship(
        'ContractProgress', back_populates='contract', cascade="all, delete-orphan",
        order_by=lambda: [ContractProgress.created_at.desc(), ContractProgress.id.desc()]
    )

    @property
    def is_fully_signed(self):
        return self.is_signed_by_buyer and self.is_signed_by_student

    def is_party(self, user_id):
        return user_id in (self.buyer_id, self.student_id)

    def other_party_id(self, user_id):
        return self.student_id if user_id == self.buyer_id else self.buyer_id

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'hire_request_id': self.hire_request_id,
            'service_id': self.service_id,
            'title': self.title,
            'buyer': self.buyer.summary() if self.buyer else None,
            'student': self.student.summary() if self.student else None,
            'price_cents': self.price_cents,
            'platform_fee_cents': self.platform_fee_cents,
            'student_payout_cents': self.student_payout_cents,
            'status': self.status.value,
            'payment_status': self.payment_status.value,
            'payout_status': self.payout_status.value,
            'is_signed_by_buyer': self.is_signed_by_buyer,
            'is_signed_by_student': self.is_signed_by_student,
            'signed_at': _iso(self.signed_at),
            'progress_status': self.progress_status,
            'progress_notes': self.progress_notes,
            'escrow_holder': self.escrow_holder,
            'payment_reference': self.payment_reference,
            'escrowed_at': _iso(self.escrowed_at),
            'paid_at': _iso(self.paid_at),
            'released_at': _iso(self.released_at),
            'created_at': _iso(self.created_at),
        }


class ContractSignature(db.Model):
    __tablename__ = 'contract_signatures'
    __table_args__ = (
        db.UniqueConstraint('contract_id', 'user_id', name='uq_signature_contract_user'),
    )

    id = db.Column(db.Integer, primary_key=True)
    contract_id = db.Column(db.Integer, db.ForeignKey('contracts.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    signature = db.Column(db.String(200), nullable=False)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    contract = db.relationship('Contract', back_populates='signatures')
    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'contract_id': self.contract_id,
            'user': self.user.summary() if self.user else None,
            'signature': self.signature,
            'created_at': _iso(self.created_at),
        }


class ContractProgress(db.Model):
    __tablename__ = 'contract_progress'

    id = db.Column(db.Integer, primary_key=True)
    contract_id = db.Column(db.Integer, db.ForeignKey('contracts.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    status = db.Column(db.String(100), nullable=False)
    notes = db.Column(db.Text)
    attachments = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    contract = db.relationship('Contract', back_populates='progress_updates')

    def to_dict(self):
        return {
            'id': self.id,
            'contract_id': self.contract_id,
            'user_id': self.user_id,
            'status': self.status,
            'notes': self.notes,
            'attachments': self.attachments or [],
            'created_at': _iso(self.created_at),
        }


class WalletTransaction(db.Model):
    __tablename__ = 'wallet_transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    contract_id = db.Column(db.Integer, db.ForeignKey('contracts.id'), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    transaction_type = db.Column(db.String(10), nullable=False, default='credit')  # credit / debit
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User', back_populates='wallet_transactions')

    @property
    def signed_amount(self):
        return self.amount_cents if self.transaction_type == 'credit' else -self.amount_cents

    def to_dict(self):
        return {
            'id': self.id,
            'contract_id': self.contract_id,
            'amount_cents': self.amount_cents,
            'transaction_type': self.transaction_type,
            'description': self.description,
            'created_at': _iso(self.created_at),
        }


# ---------------------- REVIEW ----------------------
class Review(db.Model):
    __tablename__ = 'reviews'
    __table_args__ = (
        db.UniqueConstraint('order_id', 'reviewer_id', name='uq_review_order_reviewer'),
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey('services.id'), nullable=False)
    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    reviewer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    reviewee_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    order = db.relationship('Order', back_populates='reviews')
    reviewer = db.relationship('User', foreign_keys=[reviewer_id])
    reviewee = db.relationship('User', foreign_keys=[reviewee_id])

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'service_id': self.service_id,
            'reviewer': self.reviewer.summary() if self.reviewer else None,
            'reviewee_id': self.reviewee_id,
            'rating': self.rating,
            'comment': self.comment,
            'created_at': _iso(self.created_at),
        }


# ---------------------- DISPUTE ----------------------
class Dispute(db.Model):
    __tablename__ = 'disputes'
    __table_args__ = (
        db.UniqueConstraint('order_id', 'raised_by_id', name='uq_dispute_order_raiser'),
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    raised_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = _enum_column(DisputeStatus, "dispute_status_enum", default=DisputeStatus.OPEN, nullable=False)
    resolved_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = db.relationship('Order', back_populates='disputes')
    raised_by = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'order_number': self.order.order_number if self.order else None,
            'raised_by': self.raised_by.summary() if self.raised_by else None,
            'title': self.title,
            'description': self.description,
            'status': self.status.value,
            'resolved_at': _iso(self.resolved_at),
            'created_at': _iso(self.created_at),
        }


# ---------------------- NOTIFICATION ----------------------
class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    type = _enum_column(NotificationType, "notification_type_enum", nullable=False)
    title = db.Column(db.String(200), nullable=False)
    body = db.Column(db.Text)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User', back_populates='notifications')

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type.value,
            'title': self.title,
            'body': self.body,
            'is_read': self.is_read,
            'created_at': _iso(self.created_at),
        }


# ---------------------- CHAT ----------------------
class ChatThread(db.Model):
    __tablename__ = 'chat_threads'

    id = db.Column(db.Integer, primary_key=True)
    hire_request_id = db.Column(db.Integer, db.ForeignKey('hire_requests.id'), unique=True, nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey('services.id'), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    last_message_at = db.Column(db.DateTime, nullable=True)
    msg_count = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    hire_request = db.relationship('HireRequest', back_populates='thread')
    buyer = db.relationship('User', foreign_keys=[buyer_id])
    student = db.relationship('User', foreign_keys=[student_id])
    messages = db.relationship(
        'ChatMessage', back_populates='thread',
        order_by=lambda: [ChatMessage.created_at, ChatMessage.id]
    )

    def is_party(self, user_id):
        return user_id in (self.buyer_id, self.student_id)

    def other_party_id(self, user_id):
        return self.student_id if user_id == self.buyer_id else self.buyer_id

    def to_dict(self):
        return {
            'id': self.id,
            'hire_request_id': self.hire_request_id,
            'service_id': self.service_id,
            'buyer': self.buyer.summary() if self.buyer else None,
            'student': self.student.summary() if self.student else None,
            'last_message_at': _iso(self.last_message_at),
            'msg_count': self.msg_count,
            'created_at': _iso(self.created_at),
        }


class ChatMessage(db.Model):
    __tablename__ = 'chat_messages'

    id = db.Column(db.Integer, primary_key=True)
    thread_id = db.Column(db.Integer, db.ForeignKey('chat_threads.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    body = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    thread = db.relationship('ChatThread', back_populates='messages')
    sender = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'thread_id': self.thread_id,
            'sender_id': self.sender_id,
            'body': self.body,
            'is_read': self.is_read,
            'created_at': _iso(self.created_at),
        }
