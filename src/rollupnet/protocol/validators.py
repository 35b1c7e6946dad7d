from rollupnet.core.hashing import is_field_element

from .errors import ValidationError
from .models import DepositRequest


def validate_deposit_request(request: DepositRequest) -> None:
    if not isinstance(request, DepositRequest):
        raise ValidationError(f"Expected DepositRequest, got {type(request).__name__}")
    if not isinstance(request.pubkey, (tuple, list)) or len(request.pubkey) != 2:
        raise ValidationError("Public key must be an (x, y) pair")
    if not all(is_field_element(c) for c in request.pubkey):
        raise ValidationError("Public key coordinates must be field elements")
    if not is_field_element(request.amount):
        raise ValidationError("Amount must be a non-negative field element")
    if not is_field_element(request.token_type):
        raise ValidationError("Token type must be a non-negative field element")
