"""
Unit tests for storage set discovery.

The resolver is a pure function over a mapping, so every test passes a
plain dict instead of touching os.environ.
"""

from bucketsets.core.storage.models import Misconfigured, Ready
from bucketsets.core.storage.resolver import ResolverDefaults, match_key, resolve_backends


def by_id(descriptors):
    return {d.id: d for d in descriptors}


READY_R2 = {
    "R2_BUCKET": "x",
    "R2_ENDPOINT": "e",
    "R2_ACCESS_KEY_ID": "k",
    "R2_SECRET_ACCESS_KEY": "s",
}


class TestKeyShapes:
    """Tests for matching individual keys."""

    def test_property_then_suffix(self):
        match = match_key("R2_ACCESS_KEY_ID_2")

        assert (match.prefix, match.suffix, match.canonical) == ("R2", "2", "ACCESS_KEY_ID")

    def test_suffix_then_property(self):
        match = match_key("S3_3_SECRET_ACCESS_KEY")

        assert (match.prefix, match.suffix, match.canonical) == ("S3", "3", "SECRET_ACCESS_KEY")

    def test_property_is_case_insensitive(self):
        match = match_key("R2_bucket")

        assert match.canonical == "BUCKET"

    def test_underscore_free_spelling(self):
        assert match_key("R2_ACCESSKEYID").canonical == "ACCESS_KEY_ID"

    def test_unrelated_keys_are_ignored(self):
        for key in ("PATH", "HOME", "LOG_LEVEL", "MY_APP_BUCKET", "PRUNE_DEFAULT_TTL_SECONDS"):
            assert match_key(key) is None


class TestResolveBackends:
    """Tests for grouping keys into descriptors."""

    def test_groups_default_and_numbered_sets(self):
        """A full default group and a partial _2 group give two descriptors."""
        environ = {
            **READY_R2,
            "R2_BUCKET_2": "x2",
            "R2_ENDPOINT_2": "e2",
            "R2_ACCESS_KEY_ID_2": "k2",
        }

        descriptors = by_id(resolve_backends(environ))

        assert set(descriptors) == {"R2", "R2_2"}
        assert isinstance(descriptors["R2"].status, Ready)
        assert isinstance(descriptors["R2_2"].status, Misconfigured)

    def test_misconfigured_keeps_fields_seen_and_reason(self):
        environ = {"R2_BUCKET_2": "x2", "R2_ENDPOINT_2": "e2", "R2_ACCESS_KEY_ID_2": "k2"}

        descriptor = resolve_backends(environ)[0]

        assert descriptor.status.fields_seen == ("ACCESS_KEY_ID", "BUCKET", "ENDPOINT")
        assert "SECRET_ACCESS_KEY" in descriptor.status.reason
        assert descriptor.credentials is None
        assert descriptor.bucket == "x2"

    def test_both_shapes_land_in_the_same_group(self):
        environ = {
            "R2_2_BUCKET": "b",
            "R2_ENDPOINT_2": "e",
            "R2_2_ACCESS_KEY": "k",
            "R2_SECRET_2": "s",
        }

        descriptors = resolve_backends(environ)

        assert [d.id for d in descriptors] == ["R2_2"]
        assert descriptors[0].is_ready
        assert descriptors[0].credentials.access_key_id == "k"

    def test_canonical_name_wins_over_alias(self):
        environ = {**READY_R2, "R2_ACCESS_KEY": "alias"}

        descriptor = resolve_backends(environ)[0]

        assert descriptor.credentials.access_key_id == "k"

    def test_blank_values_count_as_missing(self):
        environ = {**READY_R2, "R2_SECRET_ACCESS_KEY": "   "}

        descriptor = resolve_backends(environ)[0]

        assert not descriptor.is_ready
        assert "SECRET_ACCESS_KEY" in descriptor.status.fields_seen

    def test_defaults_apply(self):
        descriptor = resolve_backends(READY_R2)[0]

        assert descriptor.region == "auto"
        assert descriptor.frontend_origin == "*"
        assert descriptor.force_path_style is False
        assert descriptor.public_url_base == ""

    def test_defaults_are_overridable(self):
        defaults = ResolverDefaults(region="us-east-1", force_path_style=True)

        descriptor = resolve_backends(READY_R2, defaults=defaults)[0]

        assert descriptor.region == "us-east-1"
        assert descriptor.force_path_style is True

    def test_explicit_region_beats_default(self):
        descriptor = resolve_backends({**READY_R2, "R2_REGION": "eu"})[0]

        assert descriptor.region == "eu"

    def test_public_url_is_normalized(self):
        environ = {**READY_R2, "R2_PUBLIC_URL": " 'pub-1.r2.dev/' "}

        descriptor = resolve_backends(environ)[0]

        assert descriptor.public_url_base == "https://pub-1.r2.dev"

    def test_optional_properties(self):
        environ = {
            **READY_R2,
            "R2_FRONTEND_ORIGIN": "https://app.example.com",
            "R2_CF_ACCOUNT_ID": "abc123",
        }

        descriptor = resolve_backends(environ)[0]

        assert descriptor.frontend_origin == "https://app.example.com"
        assert descriptor.account_id == "abc123"

    def test_prefix_filter(self):
        environ = {**READY_R2, "AWS_ACCESS_KEY_ID": "ignored"}

        assert [d.id for d in resolve_backends(environ)] == ["AWS", "R2"]
        assert [d.id for d in resolve_backends(environ, prefixes=["r2"])] == ["R2"]

    def test_output_is_stable_for_identical_input(self):
        environ = {
            **READY_R2,
            "S3_BUCKET": "b",
            "R2_BUCKET_3": "c",
        }
        reversed_environ = dict(reversed(list(environ.items())))

        assert resolve_backends(environ) == resolve_backends(reversed_environ)

    def test_secret_is_not_in_repr(self):
        descriptor = resolve_backends(READY_R2)[0]

        assert "'s'" not in repr(descriptor.credentials)
        assert "secret_access_key" not in repr(descriptor)

    def test_empty_environment(self):
        assert resolve_backends({}) == []
