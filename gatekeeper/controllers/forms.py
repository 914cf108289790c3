"""Forms for the account views."""

from typing import Any

from wtforms import BooleanField, Form, HiddenField, PasswordField, \
    StringField
from wtforms.validators import DataRequired, Email, EqualTo, Length, \
    ValidationError

from ..services import passwords


class PasswordStrength(object):
    """Validates a field against the configured password policy."""

    def __call__(self, form: Form, field: Any) -> None:
        errors = passwords.check_policy(field.data or '')
        if errors:
            raise ValidationError(' '.join(errors))


class LoginForm(Form):
    """Sign in form."""

    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired()])
    remember_me = BooleanField('Remember me?', default=False)


class RegistrationForm(Form):
    """User registration form."""

    email = StringField('Email',
                        validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField('Password',
                             validators=[DataRequired(), PasswordStrength()])
    confirm_password = PasswordField(
        'Confirm password',
        validators=[DataRequired(),
                    EqualTo('password',
                            message='The password and confirmation password'
                                    ' do not match.')]
    )


class PasswordResetRequestForm(Form):
    """Asks for the address to send a reset link to."""

    email = StringField('Email', validators=[DataRequired(), Email()])


class ResetPasswordForm(Form):
    """
    Sets a new password using a reset token.

    Password strength is checked when the token is redeemed, not here.
    """

    token = HiddenField('Token', validators=[DataRequired()])
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('New password', validators=[DataRequired()])
    confirm_password = PasswordField(
        'Confirm password',
        validators=[DataRequired(),
                    EqualTo('password',
                            message='The password and confirmation password'
                                    ' do not match.')]
    )
