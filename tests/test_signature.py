from pixeldiag.models import RequestRecord, RequestType, Vendor
from pixeldiag.signature import PLACEMENT_IDENTIFIER_PARAMS, pixel_signature


def make_record(url, request_type=RequestType.IMPRESSION, vendor_id="v1"):
    vendor = Vendor(id=vendor_id, name=vendor_id.upper()) if vendor_id else None
    return RequestRecord(
        id="r1",
        url=url,
        timestamp=1000,
        vendor=vendor,
        vendor_request_type=request_type,
    )


class TestPixelSignature:
    def test_vendor_and_path_only(self):
        record = make_record("https://px.example/imp?cb=123")
        assert pixel_signature(record) == "v1:/imp"

    def test_identifiers_sorted(self):
        record = make_record("https://px.example/imp?sz=300x250&pid=5&cid=9")
        assert pixel_signature(record) == "v1:/imp:cid=9&pid=5&sz=300x250"

    def test_cache_busters_do_not_change_signature(self):
        a = make_record("https://px.example/imp?pid=5&cb=1")
        b = make_record("https://px.example/imp?cb=2&pid=5")
        assert pixel_signature(a) == pixel_signature(b)

    def test_different_placements_differ(self):
        a = make_record("https://px.example/imp?pid=5")
        b = make_record("https://px.example/imp?pid=6")
        assert pixel_signature(a) != pixel_signature(b)

    def test_viewability_is_eligible(self):
        record = make_record("https://px.example/view", request_type=RequestType.VIEWABILITY)
        assert pixel_signature(record) == "v1:/view"

    def test_other_types_excluded(self):
        for request_type in (RequestType.BID_REQUEST, RequestType.CLICK, RequestType.UNKNOWN, None):
            record = make_record("https://px.example/imp?pid=5", request_type=request_type)
            assert pixel_signature(record) is None

    def test_missing_vendor_uses_unknown(self):
        record = make_record("https://px.example/imp", vendor_id=None)
        assert pixel_signature(record) == "unknown:/imp"

    def test_malformed_url_yields_none(self):
        assert pixel_signature(make_record("not a url")) is None
        assert pixel_signature(make_record("https://[::1/imp")) is None

    def test_scheme_only_url_keeps_opaque_path(self):
        assert pixel_signature(make_record("about:blank/imp?pid=5")) == "v1:blank/imp:pid=5"

    def test_empty_path_is_root(self):
        assert pixel_signature(make_record("https://px.example")) == "v1:/"

    def test_empty_parameter_value_skipped(self):
        record = make_record("https://px.example/imp?pid=&cid=3")
        assert pixel_signature(record) == "v1:/imp:cid=3"

    def test_custom_parameter_list(self):
        record = make_record("https://px.example/imp?pid=5&unit=top")
        assert pixel_signature(record, params=["unit"]) == "v1:/imp:unit=top"

    def test_known_parameter_list(self):
        assert len(PLACEMENT_IDENTIFIER_PARAMS) == len(set(PLACEMENT_IDENTIFIER_PARAMS))
        for name in ("nid", "pid", "placement_id", "creative_id", "campaign", "tagid", "sz"):
            assert name in PLACEMENT_IDENTIFIER_PARAMS
