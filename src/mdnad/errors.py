# %%
class MdnadError(Exception):
    pass

class ConfigurationError(MdnadError, ValueError):
    # rejected at construction: bad tags, mismatched lengths, missing inputs
    pass

class IntegrationError(MdnadError, RuntimeError):
    # trajectory-level failure: solver did not converge or the state blew up
    pass

class DegenerateStatesWarning(RuntimeWarning):
    # energy gap clamped while computing the nonadiabatic couplings
    pass
