from flask_wtf import FlaskForm
from wtforms import BooleanField, Field, IntegerField, PasswordField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, InputRequired, Length, NumberRange, Optional
from wtforms.validators import ValidationError as FieldError

from collabotree import errors
from collabotree.models import DisputeStatus, OrderStatus, Role

FALSE_VALUES = (False, 'false', 'False', '0', 0, '')
MIN_PRICE_CENTS = 100


class TagListField(Field):
    """Accepts a JSON list of strings or a comma separated string."""

    def _value(self):
        return ', '.join(self.data or [])

    def process_formdata(self, valuelist):
        tags = []
        for value in valuelist:
            if value is None:
                continue
            tags.extend(part.strip() for part in str(value).split(','))
        self.data = [tag for tag in tags if tag]


def validate_form(form_cls, **kwargs):
    form = form_cls(**kwargs)
    if not form.validate_on_submit():
        raise errors.ValidationError("Validation failed", details=form.errors)
    return form


def submitted_fields(form):
    """Only the fields the client actually sent, for partial updates."""
    return {
        name: field.data
        for name, field in form._fields.items()
        if field.raw_data
    }


# ---------------------- AUTH / PROFILE ----------------------
class RegistrationForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=8, max=128)])
    name = StringField('Name', validators=[DataRequired(), Length(min=2, max=120)])
    role = SelectField('Role', choices=[(Role.STUDENT.value, 'Student'), (Role.BUYER.value, 'Buyer')],
                       validators=[DataRequired()])
    university = StringField('University', validators=[Optional(), Length(max=150)])


class LoginForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])


class ProfileForm(FlaskForm):
    name = StringField('Name', validators=[Optional(), Length(min=2, max=120)])
    bio = TextAreaField('Bio', validators=[Optional(), Length(max=2000)])
    university = StringField('University', validators=[Optional(), Length(max=150)])
    skills = TagListField('Skills')

    def validate_skills(self, field):
        if field.data and len(field.data) > 30:
            raise FieldError("At most 30 skills")


# ---------------------- SERVICES ----------------------
class ServiceForm(FlaskForm):
    title = StringField('Title', validators=[DataRequired(), Length(min=3, max=120)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=5000)])
    price_cents = IntegerField('Price (cents)', validators=[InputRequired(), NumberRange(min=MIN_PRICE_CENTS)])
    cover_image_url = StringField('Cover image', validators=[Optional(), Length(max=2048)])


class ServiceUpdateForm(FlaskForm):
    title = StringField('Title', validators=[Optional(), Length(min=3, max=120)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=5000)])
    price_cents = IntegerField('Price (cents)', validators=[Optional(), NumberRange(min=MIN_PRICE_CENTS)])
    cover_image_url = StringField('Cover image', validators=[Optional(), Length(max=2048)])
    is_active = BooleanField('Active', false_values=FALSE_VALUES)


class TopSelectionForm(FlaskForm):
    is_top_selection = BooleanField('Top selection', false_values=FALSE_VALUES)

    def validate_is_top_selection(self, field):
        if not field.raw_data:
            raise FieldError("This field is required.")


# ---------------------- HIRING / ORDERS ----------------------
class HireRequestForm(FlaskForm):
    service_id = IntegerField('Service', validators=[InputRequired()])
    message = TextAreaField('Message', validators=[Optional(), Length(max=2000)])
    price_cents = IntegerField('Price (cents)', validators=[Optional(), NumberRange(min=MIN_PRICE_CENTS)])


class CreateOrderForm(FlaskForm):
    hire_request_id = IntegerField('Hire request', validators=[InputRequired()])


ORDER_STATUS_CHOICES = [
    (status.value, status.value.replace('_', ' ').title())
    for status in (OrderStatus.PAID, OrderStatus.IN_PROGRESS, OrderStatus.DELIVERED,
                   OrderStatus.COMPLETED, OrderStatus.CANCELLED)
]


class OrderStatusForm(FlaskForm):
    status = SelectField('Status', choices=ORDER_STATUS_CHOICES, validators=[DataRequired()])


class PayOrderForm(FlaskForm):
    payment_reference = StringField('Payment reference', validators=[Optional(), Length(max=100)])


# ---------------------- CONTRACTS / DISPUTES ----------------------
class SignContractForm(FlaskForm):
    signature = StringField('Signature', validators=[DataRequired(), Length(max=200)])


class ProgressForm(FlaskForm):
    status = StringField('Progress status', validators=[DataRequired(), Length(max=100)])
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=5000)])
    attachments = TagListField('Attachments')


class DisputeForm(FlaskForm):
    order_id = IntegerField('Order', validators=[InputRequired()])
    title = StringField('Title', validators=[DataRequired(), Length(max=200)])
    description = TextAreaField('Description', validators=[DataRequired(), Length(min=10, max=2000)])


class DisputeStatusForm(FlaskForm):
    status = SelectField('Status', validators=[DataRequired()], choices=[
        (s.value, s.value.replace('_', ' ').title())
        for s in (DisputeStatus.UNDER_REVIEW, DisputeStatus.RESOLVED, DisputeStatus.REJECTED)
    ])


# ---------------------- REVIEWS / CHAT ----------------------
class ReviewForm(FlaskForm):
    order_id = IntegerField('Order', validators=[InputRequired()])
    rating = IntegerField('Rating (1-5)', validators=[InputRequired(), NumberRange(min=1, max=5)])
    comment = TextAreaField('Comment', validators=[Optional(), Length(max=2000)])


class MessageForm(FlaskForm):
    body = TextAreaField('Message', validators=[DataRequired(), Length(max=5000)])


# ---------------------- VERIFICATION ----------------------
class IdCardForm(FlaskForm):
    id_card_url = StringField('ID card', validators=[Optional()])


class RejectVerificationForm(FlaskForm):
    reason = TextAreaField('Reason', validators=[DataRequired(), Length(max=1000)])
