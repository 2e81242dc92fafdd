# controllers/forms.py
"""
Flask-WTF forms validating the JSON payloads of the attendance API.
FlaskForm reads JSON request bodies directly; query-string forms are built
with ``formdata=request.args``.
"""

from datetime import datetime

from flask_wtf import FlaskForm
from wtforms import StringField, FloatField, DateField, TimeField
from werkzeug.datastructures import ImmutableMultiDict
from wtforms.validators import DataRequired, Length, NumberRange, Optional, StopValidation, ValidationError

from session_attendance.services.errors import AttendanceError, failure

TIME_FORMATS = ['%H:%M:%S', '%H:%M']


def parse_iso_datetime(value):
    """Parse an ISO-8601 timestamp into a naive local datetime."""
    parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class Present:
    """Like InputRequired, but accepts falsy values such as a 0.0 coordinate."""
    field_flags = {"required": True}

    def __init__(self, message=None):
        self.message = message

    def __call__(self, form, field):
        if not field.raw_data or field.raw_data[0] in (None, ""):
            field.errors[:] = []
            raise StopValidation(self.message or "This field is required.")


class ApiForm(FlaskForm):
    """Base form for JSON endpoints; CSRF does not apply to them."""

    class Meta:
        csrf = False

        def wrap_formdata(self, form, formdata):
            formdata = super().wrap_formdata(form, formdata)
            if formdata is None:
                return None
            # JSON nulls mean "not provided"; numbers (e.g. an all-digit code)
            # arrive as strings, the way a browser form would send them
            return ImmutableMultiDict([
                (k, v if isinstance(v, str) else str(v))
                for k, v in formdata.items(multi=True) if v is not None
            ])

    def error_result(self):
        return failure(
            AttendanceError.VALIDATION_ERROR,
            'Please correct the highlighted fields',
            errors=self.errors
        )


class OpenSessionForm(ApiForm):
    course_id = StringField('Course', validators=[DataRequired(message='Course is required'), Length(max=36)])
    date = DateField('Date', format='%Y-%m-%d', validators=[DataRequired(message='Date is required')])
    start_time = TimeField('Start time', format=TIME_FORMATS,
                           validators=[Present(message='Start time is required')])
    end_time = TimeField('End time', format=TIME_FORMATS,
                         validators=[Present(message='End time is required')])
    latitude = FloatField('Latitude', validators=[
        Present(message='Anchor latitude is required'),
        NumberRange(min=-90, max=90)
    ])
    longitude = FloatField('Longitude', validators=[
        Present(message='Anchor longitude is required'),
        NumberRange(min=-180, max=180)
    ])
    room_label = StringField('Room', validators=[Optional(), Length(max=50)])
    topic = StringField('Topic', validators=[Optional(), Length(max=255)])


class ClaimForm(ApiForm):
    code = StringField('Session code', validators=[Optional(), Length(min=4, max=12)])
    session_id = StringField('Session', validators=[Optional(), Length(max=36)])
    qr_data = StringField('QR data', validators=[Optional(), Length(max=512)])
    latitude = FloatField('Latitude', validators=[
        Present(message='Location is required'),
        NumberRange(min=-90, max=90)
    ])
    longitude = FloatField('Longitude', validators=[
        Present(message='Location is required'),
        NumberRange(min=-180, max=180)
    ])
    accuracy = FloatField('Accuracy', validators=[Optional(), NumberRange(min=0)])
    client_timestamp = StringField('Client timestamp', validators=[Optional(), Length(max=40)])

    def validate_client_timestamp(self, field):
        try:
            field.parsed = parse_iso_datetime(field.data)
        except ValueError:
            raise ValidationError('Client timestamp must be ISO-8601')

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False
        if not (self.code.data or self.session_id.data or self.qr_data.data):
            self.code.errors.append('Enter a session code or scan the session QR code')
            return False
        return True

    @property
    def client_time(self):
        return getattr(self.client_timestamp, 'parsed', None) if self.client_timestamp.data else None


class DateRangeForm(ApiForm):
    start = DateField('From', format='%Y-%m-%d', validators=[Optional()])
    end = DateField('To', format='%Y-%m-%d', validators=[Optional()])

    def validate_end(self, field):
        if field.data and self.start.data and field.data < self.start.data:
            raise ValidationError('End date must not be before start date')


class PollForm(ApiForm):
    as_of = StringField('As of', validators=[Optional(), Length(max=40)])

    def validate_as_of(self, field):
        try:
            field.parsed = parse_iso_datetime(field.data)
        except ValueError:
            raise ValidationError('as_of must be ISO-8601')

    @property
    def as_of_time(self):
        return getattr(self.as_of, 'parsed', None) if self.as_of.data else None


class SessionDateForm(ApiForm):
    date = DateField('Date', format='%Y-%m-%d', validators=[Optional()])
