from datetime import timedelta

import pytest
from jose import JWTError

from metro_ops.core.security import Role, create_access_token, decode_identity


def test_decodes_identity():
    identity = decode_identity(create_access_token({"user_id": 12, "role": "CAPTAIN"}))
    assert identity.id == 12
    assert identity.role == Role.CAPTAIN
    assert identity.is_reviewer


def test_driver_designation_is_an_employee():
    identity = decode_identity(create_access_token({"user_id": "3", "role": "driver"}))
    assert identity.role == Role.EMPLOYEE
    assert not identity.is_reviewer


@pytest.mark.parametrize("claims", [{"role": "ADMIN"}, {"user_id": 1}, {"user_id": 1, "role": "MECHANIC"}])
def test_unusable_claims(claims):
    with pytest.raises(ValueError):
        decode_identity(create_access_token(claims))


def test_expired_token():
    token = create_access_token({"user_id": 1, "role": "ADMIN"}, expires_delta=timedelta(minutes=-5))
    with pytest.raises(JWTError):
        decode_identity(token)
