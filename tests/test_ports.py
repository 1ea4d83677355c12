import pytest

from parser.ports import InvalidPortSpec, expand_port_args, expand_ports


def test_single_ports_and_ranges():
    assert expand_ports("8080,9000-9002") == [8080, 9000, 9001, 9002]


def test_single_port():
    assert expand_ports("22") == [22]


def test_range_of_one():
    assert expand_ports("443-443") == [443]


def test_whitespace_and_commas_both_separate_tokens():
    assert expand_ports(" 22, 80  443 ") == [22, 80, 443]


def test_boundaries_are_accepted():
    assert expand_ports("1,65535") == [1, 65535]


def test_full_range_size():
    assert len(expand_ports("1-65535")) == 65535


def test_overlaps_are_deduplicated_and_sorted():
    assert expand_ports("9002,9000-9002,80,9001") == [80, 9000, 9001, 9002]


def test_expansion_is_idempotent():
    spec = "100-105,3,50"
    assert expand_ports(spec) == expand_ports(spec)


@pytest.mark.parametrize(
    "spec",
    [
        "80-70",
        "0",
        "65536",
        "1-65536",
        "http",
        "80-",
        "-80",
        "1-2-3",
        "+80",
        "8o",
        "",
        " , ",
    ],
)
def test_invalid_specs_raise(spec):
    with pytest.raises(InvalidPortSpec):
        expand_ports(spec)


def test_one_bad_token_fails_the_whole_spec():
    with pytest.raises(InvalidPortSpec, match="abc"):
        expand_ports("22,80,abc,443")


def test_invalid_port_spec_is_a_value_error():
    assert issubclass(InvalidPortSpec, ValueError)


def test_command_line_arguments():
    assert expand_port_args(["22", "80-82", "443,8443"]) == [22, 80, 81, 82, 443, 8443]


def test_command_line_arguments_empty():
    with pytest.raises(InvalidPortSpec):
        expand_port_args([])


@pytest.mark.parametrize("spec", ["８０", "٨٠", "80-８１"])
def test_non_ascii_digits_are_rejected(spec):
    with pytest.raises(InvalidPortSpec):
        expand_ports(spec)
