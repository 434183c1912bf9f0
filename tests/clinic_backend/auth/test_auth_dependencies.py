import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from clinic_backend.auth import jwt_handler
from clinic_backend.auth.dependencies import get_current_user, require_staff
from clinic_backend.models.user import User


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_access_token_round_trips_subject_and_role() -> None:
    token = jwt_handler.create_access_token('patient1@example.com', role='patient')

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == 'patient1@example.com'
    assert payload['role'] == 'patient'
    assert payload['exp'] > payload['iat']


def test_get_current_user_resolves_token_subject(db, clinic) -> None:
    token = jwt_handler.create_access_token('Reception@Example.com')

    user = get_current_user(credentials=_credentials(token), db=db)

    assert user.id == clinic.receptionist_id


@pytest.mark.parametrize(
    ('token', 'detail'),
    [
        ('not-a-jwt', 'Invalid token'),
        (jwt.encode({'sub': 'patient1@example.com'}, 'wrong-secret', algorithm='HS256'), 'Invalid token'),
        (jwt_handler.create_access_token(''), 'Invalid token subject'),
        (jwt_handler.create_access_token('nobody@example.com'), 'User not found'),
    ],
)
def test_get_current_user_rejects_bad_tokens(db, clinic, token: str, detail: str) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_credentials(token), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == detail


def test_require_staff_allows_reception_and_admin_only() -> None:
    assert require_staff(User(id=10, role='receptionist')).id == 10
    assert require_staff(User(id=11, role='admin')).id == 11

    for role in ('patient', 'doctor'):
        with pytest.raises(HTTPException) as exception_info:
            require_staff(User(id=1, role=role))
        assert exception_info.value.status_code == 403
