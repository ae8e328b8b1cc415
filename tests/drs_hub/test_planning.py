"""Fetch planner predicates."""

from __future__ import annotations

import dataclasses

import pytest

from DrsHub.fields import ALL_FIELDS, CORE_FIELDS
from DrsHub.planning import (
    access_url_auth,
    plan_fetches,
    requires_auth,
    should_fail_on_access_url_fail,
    should_fetch_access_url,
    should_fetch_fence_access_token,
    should_fetch_passports,
    should_fetch_user_service_account,
    should_request_metadata,
)
from DrsHub.resolvers import profiles
from DrsHub.resolvers.profiles import AccessMethodType, AccessUrlAuth

GCS = AccessMethodType.GCS
S3 = AccessMethodType.S3
HTTPS = AccessMethodType.HTTPS


class TestRequiresAuth:
    def test_bond_provider_alone_needs_no_auth(self):
        assert requires_auth(["bondProvider"]) is False
        assert requires_auth([]) is False

    def test_anything_else_needs_auth(self):
        assert requires_auth(["bondProvider", "size"]) is True
        assert requires_auth(["googleServiceAccount"]) is True


class TestMetadata:
    @pytest.mark.parametrize("field", CORE_FIELDS + ("accessUrl",))
    def test_metadata_fields(self, field):
        assert should_request_metadata(profiles.crdc(), [field]) is True

    @pytest.mark.parametrize("fields", [[], ["bondProvider"], ["googleServiceAccount"]])
    def test_no_metadata(self, fields):
        assert should_request_metadata(profiles.crdc(), fields) is False


class TestServiceAccount:
    """Bond SA keys are only fetched for GCS capable Bond providers."""

    def test_fetched_before_metadata_is_known(self):
        assert should_fetch_user_service_account(profiles.bio_data_catalyst(), None, ["googleServiceAccount"])

    def test_fetched_for_gcs(self):
        assert should_fetch_user_service_account(profiles.crdc(), GCS, ["googleServiceAccount"])

    def test_not_fetched_for_s3(self):
        assert not should_fetch_user_service_account(profiles.crdc(), S3, ["googleServiceAccount"])

    def test_not_fetched_without_bond(self):
        assert not should_fetch_user_service_account(profiles.terra_data_repo(), GCS, ["googleServiceAccount"])

    def test_not_fetched_without_gcs_policy(self):
        assert not should_fetch_user_service_account(profiles.kids_first(), None, ["googleServiceAccount"])

    def test_not_fetched_when_not_requested(self):
        assert not should_fetch_user_service_account(profiles.crdc(), GCS, ["size"])


class TestAccessUrl:
    def test_policy_decides(self):
        crdc = profiles.crdc()
        assert should_fetch_access_url(crdc, S3, ["accessUrl"]) is True
        assert should_fetch_access_url(crdc, GCS, ["accessUrl"]) is False
        assert should_fetch_access_url(crdc, HTTPS, ["accessUrl"]) is False
        assert should_fetch_access_url(crdc, None, ["accessUrl"]) is False

    def test_not_requested(self):
        assert should_fetch_access_url(profiles.crdc(), S3, ["size"]) is False

    def test_force_overrides_policy(self):
        forced = dataclasses.replace(profiles.bio_data_catalyst(), force_access_url=True)
        assert should_fetch_access_url(forced, GCS, ["accessUrl"]) is True
        assert should_fetch_access_url(forced, None, ["accessUrl"]) is True
        assert should_fetch_access_url(forced, GCS, ["gsUri"]) is False

    def test_fail_only_for_non_gcs(self):
        """Callers can fall back to gs:// paths, so only non-GCS failures are fatal."""
        assert should_fail_on_access_url_fail(S3) is True
        assert should_fail_on_access_url_fail(HTTPS) is True
        assert should_fail_on_access_url_fail(GCS) is False
        assert should_fail_on_access_url_fail(None) is False


class TestFenceToken:
    def test_fence_policy(self):
        assert should_fetch_fence_access_token(profiles.kids_first(), S3, ["accessUrl"]) is True

    def test_not_for_policies_that_skip_access_urls(self):
        assert should_fetch_fence_access_token(profiles.anvil(), GCS, ["accessUrl"]) is False

    def test_not_without_bond(self):
        forced = dataclasses.replace(profiles.terra_data_repo(), force_access_url=True)
        assert should_fetch_fence_access_token(forced, GCS, ["accessUrl"]) is False

    def test_forced_with_bond(self):
        forced = dataclasses.replace(profiles.anvil(), force_access_url=True)
        assert should_fetch_fence_access_token(forced, GCS, ["accessUrl"]) is True

    def test_primary_and_fallback_auth(self):
        """Passport providers only need a fence token for the fallback attempt."""
        passport = profiles.passport_test()
        assert should_fetch_fence_access_token(passport, GCS, ["accessUrl"]) is False
        assert (
            should_fetch_fence_access_token(passport, GCS, ["accessUrl"], use_fallback_auth=True)
            is True
        )

    def test_not_requested(self):
        assert should_fetch_fence_access_token(profiles.kids_first(), S3, ["size"]) is False


class TestPassports:
    def test_passport_policy(self):
        assert should_fetch_passports(profiles.passport_test(), GCS, ["accessUrl"]) is True
        assert should_fetch_passports(profiles.passport_test(), S3, ["accessUrl"]) is True

    def test_other_policies(self):
        assert should_fetch_passports(profiles.kids_first(), S3, ["accessUrl"]) is False
        assert should_fetch_passports(profiles.passport_test(), None, ["accessUrl"]) is False
        assert should_fetch_passports(profiles.passport_test(), GCS, ["size"]) is False


class TestAccessUrlAuth:
    def test_current_request(self):
        assert access_url_auth(AccessUrlAuth.CURRENT_REQUEST, None, "Bearer user") == "Bearer user"

    def test_fence_token(self):
        assert access_url_auth(AccessUrlAuth.FENCE_TOKEN, "fence", "Bearer user") == "Bearer fence"

    def test_passport_is_not_a_header(self):
        with pytest.raises(ValueError):
            access_url_auth(AccessUrlAuth.PASSPORT, None, "Bearer user")


class TestPlanFetches:
    def test_empty_request_plans_nothing(self):
        plan = plan_fetches(profiles.crdc(), None, [])
        assert not any(vars(plan).values())

    def test_all_fields_for_s3(self):
        plan = plan_fetches(profiles.crdc(), S3, ALL_FIELDS)
        assert plan.metadata is True
        assert plan.service_account is False
        assert plan.fence_token is True
        assert plan.access_url is True
        assert plan.fail_on_access_url_fail is True
        assert plan.passports is False
