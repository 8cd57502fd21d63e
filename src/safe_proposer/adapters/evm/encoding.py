"""
EVM Contract Call Encoding

Deterministic ABI encoding of a contract call into ``EncodedCall`` data.
Arguments are validated against the ABI entry before encoding; nothing is
coerced to make it fit.

Exported helpers
----------------
encode_call
    Validate and encode ``(abi, function_signature, arguments)`` into a
    selector-prefixed call data payload.

encode_call_spec
    Same as ``encode_call`` for a ``ContractCallSpec`` record.

decode_call
    Reverse of ``encode_call``: recover the function signature and argument
    values from call data. Used to display a proposal before signing.

Struct (tuple) arguments may be passed as mappings keyed by component
name. They are always laid out in the ABI's declared component order, never
in the order the mapping was built.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from eth_abi import decode, encode, is_encodable
from eth_utils import keccak

from ...engine.exceptions import EncodingError, EncodingFailure
from ...schemas.bases import ContractCallSpec, EncodedCall


# ---------------------------------------------------------------------------
# ABI lookup
# ---------------------------------------------------------------------------

def canonical_type(param: Mapping[str, Any]) -> str:
    """
    Collapse an ABI parameter into its canonical type string.

    Tuples are expanded recursively, e.g. a ``FeeConfig`` struct becomes
    ``(uint256,uint256,uint256)`` and an array of it ``(uint256,uint256,uint256)[]``.
    """
    typ = param["type"]
    if typ.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components", []))
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def function_signature(entry: Mapping[str, Any]) -> str:
    """Return the canonical signature of an ABI function entry."""
    types = ",".join(canonical_type(p) for p in entry.get("inputs", []))
    return f"{entry['name']}({types})"


def function_selector(signature: str) -> bytes:
    """Return the 4-byte selector of a canonical function signature."""
    return keccak(text=signature)[:4]


def find_function(contract_abi: Sequence[Mapping[str, Any]], signature: str) -> Mapping[str, Any]:
    """
    Find the ABI entry for ``signature``.

    Accepts a canonical signature (``"withdraw(string,uint256)"``) or a bare
    name when only one overload exists.

    Raises:
        EncodingError: UNKNOWN_FUNCTION if no entry (or more than one
            overload for a bare name) matches.
    """
    wanted = signature.replace(" ", "")
    functions = [e for e in contract_abi if e.get("type", "function") == "function" and "name" in e]

    if "(" in wanted:
        matches = [e for e in functions if function_signature(e) == wanted]
    else:
        matches = [e for e in functions if e["name"] == wanted]

    if not matches:
        raise EncodingError(EncodingFailure.UNKNOWN_FUNCTION, f"Function {signature!r} not found in ABI")
    if len(matches) > 1:
        candidates = ", ".join(function_signature(e) for e in matches)
        raise EncodingError(
            EncodingFailure.UNKNOWN_FUNCTION,
            f"Function name {signature!r} is ambiguous; use one of: {candidates}",
        )
    return matches[0]


# ---------------------------------------------------------------------------
# Argument validation
# ---------------------------------------------------------------------------

def _type_mismatch(path: str, typ: str, value: Any) -> EncodingError:
    return EncodingError(
        EncodingFailure.TYPE_MISMATCH,
        f"Argument {path} expects {typ}, got {type(value).__name__} {value!r}",
    )


def _split_array(typ: str) -> Tuple[str, Optional[int]]:
    """Split ``T[]`` / ``T[n]`` into the element type and optional fixed length."""
    head, _, size = typ[:-1].rpartition("[")
    return head, int(size) if size else None


def _normalize_scalar(typ: str, value: Any, path: str) -> Any:
    if typ.startswith(("uint", "int")):
        if isinstance(value, bool) or not isinstance(value, int):
            raise _type_mismatch(path, typ, value)
    elif typ == "bool":
        if not isinstance(value, bool):
            raise _type_mismatch(path, typ, value)
    elif typ == "string":
        if not isinstance(value, str):
            raise _type_mismatch(path, typ, value)
    elif typ.startswith("bytes"):
        # 0x-hex strings are the conventional wire form of byte arguments
        if isinstance(value, str) and value.startswith("0x"):
            try:
                value = bytes.fromhex(value[2:])
            except ValueError:
                raise _type_mismatch(path, typ, value)
        elif not isinstance(value, (bytes, bytearray)):
            raise _type_mismatch(path, typ, value)
    elif typ == "address":
        if not isinstance(value, str):
            raise _type_mismatch(path, typ, value)

    if not is_encodable(typ, value):
        raise _type_mismatch(path, typ, value)
    return value


def _normalize_argument(param: Mapping[str, Any], value: Any, path: str) -> Any:
    """
    Validate one argument against its ABI parameter and put it in encodable form.

    Structs become tuples in declared component order; arrays become lists.
    """
    typ = param["type"]

    if typ.endswith("]"):
        element_type, size = _split_array(typ)
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Sequence):
            raise _type_mismatch(path, typ, value)
        if size is not None and len(value) != size:
            raise EncodingError(
                EncodingFailure.TYPE_MISMATCH,
                f"Argument {path} expects {size} elements, got {len(value)}",
            )
        element_param = {**param, "type": element_type}
        return [_normalize_argument(element_param, v, f"{path}[{i}]") for i, v in enumerate(value)]

    if typ == "tuple":
        components = param.get("components", [])
        names = [c.get("name", "") for c in components]

        if isinstance(value, Mapping):
            missing = [n for n in names if n not in value]
            unknown = [k for k in value if k not in names]
            if missing or unknown:
                raise EncodingError(
                    EncodingFailure.TYPE_MISMATCH,
                    f"Argument {path} struct fields do not match ABI "
                    f"(missing={missing}, unknown={unknown}, expected={names})",
                )
            items = [value[n] for n in names]
        elif isinstance(value, (list, tuple)):
            if len(value) != len(components):
                raise EncodingError(
                    EncodingFailure.TYPE_MISMATCH,
                    f"Argument {path} expects {len(components)} struct fields, got {len(value)}",
                )
            items = list(value)
        else:
            raise _type_mismatch(path, canonical_type(param), value)

        return tuple(
            _normalize_argument(c, v, f"{path}.{c.get('name') or i}")
            for i, (c, v) in enumerate(zip(components, items))
        )

    return _normalize_scalar(typ, value, path)


def _normalize_arguments(entry: Mapping[str, Any], argument_values: Sequence[Any]) -> List[Any]:
    inputs = entry.get("inputs", [])
    if len(argument_values) != len(inputs):
        raise EncodingError(
            EncodingFailure.ARITY_MISMATCH,
            f"{function_signature(entry)} expects {len(inputs)} arguments, got {len(argument_values)}",
        )
    return [
        _normalize_argument(param, value, param.get("name") or f"#{i}")
        for i, (param, value) in enumerate(zip(inputs, argument_values))
    ]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def encode_call(
    contract_abi: Sequence[Mapping[str, Any]],
    function_signature_: str,
    argument_values: Sequence[Any],
    *,
    to: str,
    value: int = 0,
) -> EncodedCall:
    """
    Validate and ABI-encode a contract call.

    Args:
        contract_abi:        ABI list of the target contract.
        function_signature_: Canonical signature or unambiguous function name.
        argument_values:     Ordered argument values. Struct arguments may be
                             mappings keyed by component name.
        to:                  Target contract address.
        value:               Native value in wei; defaults to 0.

    Returns:
        ``EncodedCall`` whose ``data`` is ``selector || abi.encode(args)``.

    Raises:
        EncodingError: UNKNOWN_FUNCTION, ARITY_MISMATCH or TYPE_MISMATCH.

    Example::

        call = encode_call(
            get_governance_abi(),
            "proposeProtocolFeeConfig((uint256,uint256,uint256))",
            [{"mintBp": 500, "patchBp": 250, "assignBp": 100}],
            to=contract_address,
        )
    """
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise EncodingError(EncodingFailure.TYPE_MISMATCH, f"value must be a non-negative int, got {value!r}")
    if isinstance(argument_values, (str, bytes, Mapping)):
        raise EncodingError(
            EncodingFailure.TYPE_MISMATCH,
            "argument_values must be an ordered sequence of arguments",
        )

    entry = find_function(contract_abi, function_signature_)
    signature = function_signature(entry)
    normalized = _normalize_arguments(entry, list(argument_values))
    types = [canonical_type(p) for p in entry.get("inputs", [])]

    data = function_selector(signature) + encode(types, normalized)
    return EncodedCall(to=to, value=value, data=data, function_signature=signature)


def encode_call_spec(contract_abi: Sequence[Mapping[str, Any]], spec: ContractCallSpec) -> EncodedCall:
    """Encode a ``ContractCallSpec`` against ``contract_abi``."""
    return encode_call(
        contract_abi,
        spec.function_signature,
        spec.argument_values,
        to=spec.target_address,
        value=spec.value,
    )


def decode_call(contract_abi: Sequence[Mapping[str, Any]], data: bytes | str) -> Tuple[str, Tuple[Any, ...]]:
    """
    Decode call data produced by ``encode_call``.

    Returns:
        ``(function_signature, arguments)``; struct arguments come back as
        tuples in declared component order.

    Raises:
        EncodingError: UNKNOWN_FUNCTION if the selector is not in the ABI.
    """
    if isinstance(data, str):
        data = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    if len(data) < 4:
        raise EncodingError(EncodingFailure.UNKNOWN_FUNCTION, "Call data is shorter than a selector")

    selectors: Dict[bytes, Mapping[str, Any]] = {
        function_selector(function_signature(e)): e
        for e in contract_abi
        if e.get("type", "function") == "function" and "name" in e
    }
    entry = selectors.get(data[:4])
    if entry is None:
        raise EncodingError(EncodingFailure.UNKNOWN_FUNCTION, f"Unknown selector 0x{data[:4].hex()}")

    types = [canonical_type(p) for p in entry.get("inputs", [])]
    return function_signature(entry), tuple(decode(types, data[4:]))
