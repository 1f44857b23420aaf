"""
clike Backend
=============

Thin wrapper around llvmlite.binding for everything that happens after
IR emission: verification, optimization and in-process execution.

    ir.Module ──str()──► IR text ──parse_assembly──► binding.ModuleRef
                                                      │
                         verify_module ◄──────────────┤
                         optimize_module ◄────────────┤
                         JITSession (MCJIT) ◄─────────┘

LLVM raises RuntimeError for malformed IR and failed verification; those
are reported as BackendError. The native target is initialized once, on
first use.

Example:
    module = generate_module(program)
    verify_module(module)
    assert run_function(module, "main") == 7
"""

import ctypes
import logging
from typing import Any, Callable, Optional, Union

from llvmlite import ir
import llvmlite.binding as llvm

from clike.errors import BackendError

logger = logging.getLogger(__name__)

_initialized = False

# LLVM IR type text -> ctypes type for JIT calls
_CTYPES = {
    "i32": ctypes.c_int32,
    "float": ctypes.c_float,
    "double": ctypes.c_double,
    "void": None,
}


def _initialize() -> None:
    global _initialized
    if _initialized:
        return
    llvm.initialize_native_target()
    llvm.initialize_native_asmprinter()
    _initialized = True
    logger.debug(f"initialized native target ({llvm.get_process_triple()})")


def host_triple() -> str:
    """Target triple of the running process."""
    return llvm.get_process_triple()


def _target_machine(opt_level: int = 2) -> llvm.TargetMachine:
    _initialize()
    target = llvm.Target.from_default_triple()
    return target.create_target_machine(opt=opt_level)


def parse_module(module: Union[ir.Module, str]) -> llvm.ModuleRef:
    """
    Parse an IR module (or IR text) into an LLVM module.

    Raises:
        BackendError: If LLVM rejects the IR text
    """
    text = str(module)
    try:
        return llvm.parse_assembly(text)
    except RuntimeError as e:
        raise BackendError(f"LLVM could not parse the generated IR: {e}") from e


def verify_module(module: Union[ir.Module, str]) -> llvm.ModuleRef:
    """
    Run LLVM's verifier over a module.

    Returns:
        The parsed and verified module

    Raises:
        BackendError: If parsing or verification fails
    """
    llmod = parse_module(module)
    try:
        llmod.verify()
    except RuntimeError as e:
        raise BackendError(f"IR verification failed: {e}") from e
    logger.debug(f"verified module '{llmod.name}'")
    return llmod


def optimize_module(module: Union[ir.Module, str], level: int = 2) -> str:
    """
    Run the default optimization pipeline and return the optimized IR text.

    Args:
        module: Module to optimize (left unchanged)
        level: Speed level 0-3, as for -O0 .. -O3

    Raises:
        BackendError: If the level is out of range or the IR is invalid
    """
    if not 0 <= level <= 3:
        raise BackendError(f"optimization level must be 0-3, got {level}")

    llmod = verify_module(module)
    tm = _target_machine(level)
    pto = llvm.create_pipeline_tuning_options(speed_level=level)
    pass_builder = llvm.create_pass_builder(tm, pto)
    pass_manager = pass_builder.getModulePassManager()
    pass_manager.run(llmod, pass_builder)

    logger.debug(f"optimized module '{llmod.name}' at -O{level}")
    return str(llmod)


# =============================================================================
# JIT Execution
# =============================================================================

class JITSession:
    """
    Compiles a module with MCJIT and calls its functions through ctypes.

    The session owns the execution engine; function pointers obtained from
    it are only valid while the session is alive.

    Example:
        with JITSession(module) as jit:
            print(jit.call("factorial", 5))
    """

    def __init__(self, module: Union[ir.Module, str]):
        self._ir_module = module if isinstance(module, ir.Module) else None
        llmod = verify_module(module)

        tm = _target_machine()
        llmod.triple = tm.triple
        llmod.data_layout = str(tm.target_data)

        try:
            self._engine = llvm.create_mcjit_compiler(llmod, tm)
            self._engine.finalize_object()
            self._engine.run_static_constructors()
        except RuntimeError as e:
            raise BackendError(f"JIT compilation failed: {e}") from e

        self._llmod = llmod
        self._cache: dict[str, Callable] = {}

    def __enter__(self) -> "JITSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self._cache.clear()

    def function(self, name: str) -> Callable:
        """
        Return a ctypes callable for a compiled function.

        Raises:
            BackendError: If the function is missing or has an
                          unsupported signature
        """
        if name in self._cache:
            return self._cache[name]

        try:
            llfn = self._llmod.get_function(name)
        except NameError:
            raise BackendError(f"no function named '{name}' in module") from None
        if llfn.is_declaration:
            raise BackendError(f"function '{name}' has no body")

        fnty = self._signature(name, llfn)
        restype = self._ctype(fnty.return_type, name)
        argtypes = [self._ctype(t, name) for t in fnty.args]

        address = self._engine.get_function_address(name)
        if not address:
            raise BackendError(f"function '{name}' was not compiled")

        cfunc = ctypes.CFUNCTYPE(restype, *argtypes)(address)
        self._cache[name] = cfunc
        return cfunc

    def call(self, name: str, *args: Any) -> Optional[Union[int, float]]:
        """Call a compiled function with Python arguments."""
        cfunc = self.function(name)
        if len(args) != len(cfunc.argtypes):
            raise BackendError(
                f"'{name}' takes {len(cfunc.argtypes)} argument(s), {len(args)} given"
            )
        return cfunc(*args)

    def _signature(self, name: str, llfn: llvm.ValueRef) -> ir.FunctionType:
        if self._ir_module is not None:
            fn = self._ir_module.globals.get(name)
            if isinstance(fn, ir.Function):
                return fn.ftype
        # Reconstruct from the binding's type text, e.g. "i32 (i32, double)"
        restext, _, argtext = str(llfn.global_value_type).partition(" (")
        params = [p.strip() for p in argtext.rstrip(")").split(",") if p.strip()]
        return _TextSignature(restext.strip(), params)

    @staticmethod
    def _ctype(ty: Any, name: str) -> Any:
        key = str(ty)
        if key not in _CTYPES:
            raise BackendError(f"function '{name}' uses unsupported type '{key}'")
        return _CTYPES[key]


class _TextSignature:
    """Function signature recovered from LLVM type text."""

    def __init__(self, return_type: str, args: list[str]):
        self.return_type = return_type
        self.args = args


def run_function(module: Union[ir.Module, str], name: str, *args: Any) -> Optional[Union[int, float]]:
    """
    JIT-compile a module and call one of its functions.

    Example:
        >>> run_function(module, "add", 2, 3)
        5
    """
    with JITSession(module) as jit:
        return jit.call(name, *args)
