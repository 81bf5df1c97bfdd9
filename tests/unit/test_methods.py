"""Tests for the payment method catalog and document types."""

from decimal import Decimal

from till_kernel.domain.dtos import DocumentType, RawOrder
from till_kernel.domain.methods import (
    BUCKET_ORDER,
    CASH_FOREIGN_LABEL,
    CASH_LOCAL_LABEL,
    MOBILE_TRANSFER_LABEL,
    PEER_TRANSFER_LABEL,
    PaymentBucket,
    bucket_for_method,
    canonical_label,
)


class TestBucketForMethod:

    def test_fixed_labels(self):
        assert bucket_for_method(MOBILE_TRANSFER_LABEL) == PaymentBucket.MOBILE_TRANSFER
        assert bucket_for_method(CASH_FOREIGN_LABEL) == PaymentBucket.CASH_FOREIGN
        assert bucket_for_method(CASH_LOCAL_LABEL) == PaymentBucket.CASH_LOCAL
        assert bucket_for_method(PEER_TRANSFER_LABEL) == PaymentBucket.PEER_TRANSFER

    def test_terminals_default_to_point_of_sale(self):
        """Any unknown label is a dynamic terminal."""
        assert bucket_for_method("Banesco") == PaymentBucket.POINT_OF_SALE
        assert bucket_for_method("Sin nombre") == PaymentBucket.POINT_OF_SALE

    def test_canonical_label_round_trip(self):
        for bucket in BUCKET_ORDER:
            if bucket != PaymentBucket.POINT_OF_SALE:
                assert bucket_for_method(canonical_label(bucket)) == bucket

    def test_bucket_order_covers_every_bucket(self):
        assert set(BUCKET_ORDER) == set(PaymentBucket)


class TestDocumentType:

    def test_known_codes(self):
        assert DocumentType.parse("FAV") == DocumentType.CASH_BASIS
        assert DocumentType.parse(" bc ") == DocumentType.VOIDED

    def test_unknown_codes_file_under_credit_basis(self):
        assert DocumentType.parse("XYZ") == DocumentType.CREDIT_BASIS
        assert DocumentType.parse(None) == DocumentType.CREDIT_BASIS

    def test_non_string_codes(self):
        """JSON numbers and other scalars are read as text, never raise."""
        assert DocumentType.parse(7) == DocumentType.CREDIT_BASIS
        assert DocumentType.parse(0) == DocumentType.CREDIT_BASIS
        assert DocumentType.parse(False) == DocumentType.CREDIT_BASIS

    def test_voided_flag(self):
        order = RawOrder(order_id="1", document_type=DocumentType.VOIDED)
        assert order.is_voided
        assert order.pos_local == Decimal("0")
