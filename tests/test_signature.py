#!/usr/bin/env python
"""
test_signature.py
~~~~~~~~~~~~~~~~~

Unit tests for argument-capture signature parsing.

Tests:
    1. Every argument spec kind compiles to the right descriptor
    2. Slices: indices, ranges, negative indices, quoted keys
    3. Malformed signatures raise SignatureSyntaxError with a position
    4. Parsing is deterministic and round-trips through str()
"""

from __future__ import annotations

import unittest

from wrapscope.exceptions import SignatureSyntaxError
from wrapscope.signature import (
    CaptureDescriptor,
    CaptureKind,
    CompiledSignature,
    IndexRange,
    parse_signature,
)


class TestArgumentSpecs(unittest.TestCase):
    """Each spec kind on its own."""

    def test_scalar(self) -> None:
        sig = parse_signature("($name)")
        self.assertEqual(sig.descriptors, (CaptureDescriptor(CaptureKind.SCALAR, "name"),))

    def test_skip(self) -> None:
        sig = parse_signature("(undef)")
        self.assertEqual(sig.descriptors, (CaptureDescriptor(CaptureKind.SKIP),))

    def test_array_and_hash(self) -> None:
        self.assertEqual(parse_signature("@rest").descriptors[0].kind, CaptureKind.ARRAY)
        self.assertEqual(parse_signature("%opts").descriptors[0].kind, CaptureKind.HASH)

    def test_references(self) -> None:
        sig = parse_signature(r"(\@items, \%config)")
        self.assertEqual(
            [d.kind for d in sig],
            [CaptureKind.ARRAY_REF, CaptureKind.HASH_REF],
        )
        self.assertEqual([d.name for d in sig], ["items", "config"])

    def test_mixed_list(self) -> None:
        sig = parse_signature("($config, undef, @rest[0, 2])")
        self.assertEqual(
            [d.kind for d in sig],
            [CaptureKind.SCALAR, CaptureKind.SKIP, CaptureKind.ARRAY],
        )
        self.assertEqual(len(sig), 3)

    def test_parentheses_are_optional(self) -> None:
        self.assertEqual(parse_signature("$a, $b"), parse_signature("($a, $b)"))

    def test_whitespace_is_ignored(self) -> None:
        self.assertEqual(parse_signature("(  $a ,\n\t@b [ 0 .. 1 ] )"), parse_signature("($a,@b[0..1])"))

    def test_trailing_comma(self) -> None:
        self.assertEqual(parse_signature("($a, $b,)"), parse_signature("($a, $b)"))

    def test_empty_signature(self) -> None:
        for text in ("", "()", "  ( )  "):
            with self.subTest(text=text):
                sig = parse_signature(text)
                self.assertEqual(len(sig), 0)
                self.assertFalse(sig)


class TestSlices(unittest.TestCase):
    """Index and key slices."""

    def test_index_slice(self) -> None:
        descriptor = parse_signature("@rest[0, 2..4]").descriptors[0]
        self.assertEqual(descriptor.indices, (IndexRange(0, 0), IndexRange(2, 4)))
        self.assertTrue(descriptor.is_sliced)

    def test_negative_indices(self) -> None:
        descriptor = parse_signature(r"\@items[-1, -3..-2]").descriptors[0]
        self.assertEqual(descriptor.indices, (IndexRange(-1, -1), IndexRange(-3, -2)))

    def test_key_slice_with_both_quote_styles(self) -> None:
        descriptor = parse_signature("""%opts{"timeout", 'retries'}""").descriptors[0]
        self.assertEqual(descriptor.keys, ("timeout", "retries"))

    def test_key_slice_escapes(self) -> None:
        descriptor = parse_signature(r"""\%headers{"say \"hi\"", 'it\'s'}""").descriptors[0]
        self.assertEqual(descriptor.keys, ('say "hi"', "it's"))

    def test_unsliced_captures_everything(self) -> None:
        descriptor = parse_signature("@rest").descriptors[0]
        self.assertIsNone(descriptor.indices)
        self.assertFalse(descriptor.is_sliced)

    def test_range_resolution(self) -> None:
        self.assertEqual(list(IndexRange(1, 3).resolve(10)), [1, 2, 3])
        self.assertEqual(list(IndexRange(-2, -1).resolve(5)), [3, 4])
        self.assertEqual(list(IndexRange(3, 8).resolve(5)), [3, 4])
        self.assertEqual(list(IndexRange(4, 2).resolve(10)), [])
        self.assertEqual(list(IndexRange(0, 10**18).resolve(3)), [0, 1, 2])
        self.assertEqual(list(IndexRange(-10**18, 1).resolve(3)), [0, 1])


class TestSignatureErrors(unittest.TestCase):
    """Malformed signatures are rejected at parse time."""

    def assertSyntaxError(self, text: str, fragment: str) -> SignatureSyntaxError:
        with self.assertRaises(SignatureSyntaxError) as cm:
            parse_signature(text, owner="pkg.func")
        self.assertIn(fragment, str(cm.exception))
        self.assertIn("pkg.func", str(cm.exception))
        return cm.exception

    def test_expression_in_index_slice(self) -> None:
        self.assertSyntaxError("@rest[i]", "only integer literals")

    def test_expression_in_key_slice(self) -> None:
        self.assertSyntaxError("%opts{key}", "only quoted string literals")

    def test_empty_slice(self) -> None:
        self.assertSyntaxError("@rest[]", "only integer literals")
        self.assertSyntaxError("%opts{}", "only quoted string literals")

    def test_missing_comma(self) -> None:
        error = self.assertSyntaxError("($a $b)", "expected ','")
        self.assertEqual(error.position, 4)
        self.assertEqual(error.token, "$")

    def test_unbalanced_parentheses(self) -> None:
        self.assertSyntaxError("($a, $b", "expected")
        self.assertSyntaxError("$a, $b)", "expected ','")
        self.assertSyntaxError("($a) $b", "unexpected trailing input")

    def test_missing_name(self) -> None:
        self.assertSyntaxError("($)", "expected a name")

    def test_scalar_reference(self) -> None:
        self.assertSyntaxError(r"\$a", "after '\\'")

    def test_bareword(self) -> None:
        self.assertSyntaxError("(name)", "expected an argument spec")

    def test_rest_capture_must_be_last(self) -> None:
        self.assertSyntaxError("(@rest, $a)", "must come last")
        self.assertSyntaxError("(%opts, undef)", "must come last")

    def test_end_of_input_is_reported(self) -> None:
        error = self.assertSyntaxError("@rest[0", "',' or ']'")
        self.assertEqual(error.token, "")
        self.assertIn("end of signature", str(error))

    def test_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            parse_signature("@")


class TestCompiledSignature(unittest.TestCase):
    """Determinism and rendering."""

    def test_parsing_is_deterministic(self) -> None:
        text = r"""($a, undef, \@b[0, -1], \%c{"x"}, %rest)"""
        self.assertEqual(parse_signature(text), parse_signature(text))

    def test_text_does_not_affect_equality(self) -> None:
        self.assertEqual(parse_signature("$a"), parse_signature("( $a )"))
        self.assertEqual(parse_signature("( $a )").text, "( $a )")

    def test_str_round_trips(self) -> None:
        sig = parse_signature(r"""($a, undef, \@b[0, 2..4], %c{'x', 'y'})""")
        self.assertEqual(str(sig), r"""($a, undef, \@b[0, 2..4], %c{'x', 'y'})""")
        self.assertEqual(parse_signature(str(sig)), sig)

    def test_signature_is_immutable(self) -> None:
        sig = parse_signature("$a")
        with self.assertRaises(AttributeError):
            sig.descriptors = ()  # type: ignore[misc]

    def test_empty_default(self) -> None:
        self.assertEqual(CompiledSignature(), parse_signature(""))


if __name__ == '__main__':
    unittest.main()
