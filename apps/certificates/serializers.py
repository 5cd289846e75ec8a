"""Request and response serializers for the certificate API."""

from __future__ import annotations

from rest_framework import serializers

from apps.certificates.models import Certificate


class CertificateSerializer(serializers.ModelSerializer):
    """Read-only representation of an issued :class:`Certificate`."""

    explorer_url = serializers.CharField(read_only=True)
    course_id = serializers.IntegerField(read_only=True)
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Certificate
        fields = [
            "certificate_number",
            "user_id",
            "course_id",
            "recipient_name",
            "course_title",
            "recipient_account_id",
            "completion_date",
            "collection_id",
            "serial_number",
            "image_file_id",
            "metadata_file_id",
            "ipfs_image_url",
            "ipfs_metadata_url",
            "onchain_metadata",
            "platform_signature",
            "mint_transaction_id",
            "transfer_transaction_id",
            "status",
            "minted_at",
            "transferred_at",
            "explorer_url",
        ]
        read_only_fields = fields


class MintRequestSerializer(serializers.Serializer):
    course_id = serializers.IntegerField(min_value=1)
    user_id = serializers.IntegerField(min_value=1, required=False)


class VerifyRequestSerializer(serializers.Serializer):
    certificate_number = serializers.CharField(required=False, allow_blank=False, max_length=32)
    collection_id = serializers.CharField(required=False, allow_blank=False, max_length=64)
    serial_number = serializers.IntegerField(required=False, min_value=1)

    def validate(self, attrs):
        by_number = "certificate_number" in attrs
        by_token = "collection_id" in attrs or "serial_number" in attrs
        if by_number == by_token:
            raise serializers.ValidationError(
                "Provide either certificate_number or collection_id with serial_number."
            )
        if by_token and not ("collection_id" in attrs and "serial_number" in attrs):
            raise serializers.ValidationError(
                "collection_id and serial_number must be provided together."
            )
        return attrs
