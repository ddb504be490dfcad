from dog.dog_datatypes import (
    CallDepthExceeded, DogError, DogSyntaxError, ExecutionError, InternalError,
    NoMatchingOverload, OverloadRejected, UndeclaredVariable, UnknownFunction,
    Value,
)
from dog.dog_functions import FunctionRegistry, host_function
from dog.dog_interpreter import Runtime
from dog.dog_runtime import ExecutionResult, ScriptRunner
from dog.dog_template import Template

__all__ = [
    "CallDepthExceeded", "DogError", "DogSyntaxError", "ExecutionError",
    "InternalError", "NoMatchingOverload", "OverloadRejected",
    "UndeclaredVariable", "UnknownFunction", "Value", "FunctionRegistry",
    "host_function", "Runtime", "ExecutionResult", "ScriptRunner", "Template",
]
