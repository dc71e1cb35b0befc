import hashlib

import pytest
import tomllib

from fixtures.userdata import AA_CDH_SHA384, AA_CONFIG, CDH_CONFIG, POLICY
from peerpod.exceptions import (
    InitdataMetaException,
    MissingStaticFileException,
    StaticFileEncodingException,
    UnsupportedDigestAlgorithmException,
)
from peerpod.userdata.initdata import calculate_digest, construct_initdata, load_initdata_meta


@pytest.fixture
def static_files(provision_config):
    provision_config.aa_config_path.write_text(AA_CONFIG)
    provision_config.cdh_config_path.write_text(CDH_CONFIG)
    return provision_config


def test_load_initdata_meta(initdata_meta):
    initdata = load_initdata_meta(initdata_meta)

    assert initdata.algorithm == "sha384"
    assert initdata.version == "0.1.0"
    assert initdata.data == {}


def test_load_initdata_meta_missing(provision_config):
    with pytest.raises(InitdataMetaException, match="does not exist"):
        load_initdata_meta(provision_config.initdata_meta_path)


@pytest.mark.parametrize("content", ["algorithm = ", "version = '0.1.0'\n", "algorithm = 384\nversion = '1'\n"])
def test_load_initdata_meta_invalid(provision_config, content):
    provision_config.initdata_meta_path.write_text(content)

    with pytest.raises(InitdataMetaException):
        load_initdata_meta(provision_config.initdata_meta_path)


def test_calculate_digest_golden_value(initdata_meta, static_files):
    """sha384 over aa.toml + cdh.toml, policy.rego absent and skipped."""
    digest = calculate_digest(static_files)

    assert digest == AA_CDH_SHA384
    assert static_files.digest_path.read_text() == AA_CDH_SHA384


def test_calculate_digest_is_deterministic(initdata_meta, static_files):
    assert calculate_digest(static_files) == calculate_digest(static_files)


def test_calculate_digest_changes_with_content(initdata_meta, static_files):
    before = calculate_digest(static_files)
    static_files.cdh_config_path.write_text(CDH_CONFIG + "\n")

    assert calculate_digest(static_files) != before


def test_calculate_digest_follows_configured_order(initdata_meta, static_files):
    reordered = static_files.model_copy(
        update={"static_files": [static_files.cdh_config_path, static_files.aa_config_path]}
    )

    digest = calculate_digest(reordered)

    assert digest == hashlib.sha384((CDH_CONFIG + AA_CONFIG).encode()).hexdigest()
    assert digest != AA_CDH_SHA384


@pytest.mark.parametrize("algorithm", ["sha256", "sha512"])
def test_calculate_digest_other_algorithms(static_files, algorithm):
    static_files.initdata_meta_path.write_text(f"algorithm = '{algorithm}'\nversion = '0.1.0'\n")
    static_files.policy_path.write_text(POLICY)

    digest = calculate_digest(static_files)

    expected = hashlib.new(algorithm, (AA_CONFIG + CDH_CONFIG + POLICY).encode()).hexdigest()
    assert digest == expected


def test_calculate_digest_with_no_static_files(initdata_meta, provision_config):
    digest = calculate_digest(provision_config)

    assert digest == hashlib.sha384(b"").hexdigest()


def test_unsupported_algorithm_leaves_digest_untouched(static_files):
    static_files.initdata_meta_path.write_text("algorithm = 'md5'\nversion = '0.1.0'\n")
    static_files.digest_path.write_text("previous")

    with pytest.raises(UnsupportedDigestAlgorithmException):
        calculate_digest(static_files)

    assert static_files.digest_path.read_text() == "previous"


def test_unsupported_algorithm_writes_no_digest(static_files):
    static_files.initdata_meta_path.write_text("algorithm = 'sha1'\nversion = '0.1.0'\n")

    with pytest.raises(UnsupportedDigestAlgorithmException):
        calculate_digest(static_files)

    assert not static_files.digest_path.exists()


def test_construct_initdata(initdata_meta, static_files):
    static_files.policy_path.write_text(POLICY)

    initdata = construct_initdata(static_files)

    written = tomllib.loads(static_files.initdata_toml_path.read_text())
    assert written == {
        "algorithm": "sha384",
        "version": "0.1.0",
        "data": {
            "aa.toml": AA_CONFIG,
            "cdh.toml": CDH_CONFIG,
            "policy.rego": POLICY,
        },
    }
    assert initdata.data["policy.rego"] == POLICY


def test_construct_initdata_missing_static_file(initdata_meta, static_files):
    with pytest.raises(MissingStaticFileException, match="policy.rego"):
        construct_initdata(static_files)

    assert not static_files.initdata_toml_path.exists()


ESCAPE_HEAVY_POLICY = (
    r'''package agent_policy

default AllowRequest := false

AllowRequest {
    regex.match("^\\d+\\x41$", input.name)
    input.path == 'C:\\Windows\\'
    contains(input.msg, "say \"hi\"")
}
'''
    + "tab\there\r\nunicode caf\u00e9 \U0001F600 '''\"\"\"\n"
)


def test_construct_initdata_round_trips_file_contents(initdata_meta, static_files):
    """Loading the bundle must give back every static file byte for byte."""
    static_files.policy_path.write_bytes(ESCAPE_HEAVY_POLICY.encode("utf-8"))

    construct_initdata(static_files)

    with open(static_files.initdata_toml_path, "rb") as f:
        written = tomllib.load(f)
    for path in static_files.static_files:
        assert written["data"][path.name].encode("utf-8") == path.read_bytes()


def test_construct_initdata_non_utf8_static_file(initdata_meta, static_files):
    static_files.policy_path.write_text(POLICY)
    static_files.aa_config_path.write_bytes(b"# caf\xe9\n")

    with pytest.raises(StaticFileEncodingException, match="aa.toml"):
        construct_initdata(static_files)

    assert not static_files.initdata_toml_path.exists()
