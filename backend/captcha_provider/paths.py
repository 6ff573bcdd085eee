from enum import Enum

API_PREFIX = "/v1/prosopo/provider"


class ApiPaths(str, Enum):
    GET_IMAGE_CAPTCHA_CHALLENGE = f"{API_PREFIX}/captcha/image"
    GET_POW_CAPTCHA_CHALLENGE = f"{API_PREFIX}/captcha/pow"
    SUBMIT_IMAGE_CAPTCHA_SOLUTION = f"{API_PREFIX}/solution"
    SUBMIT_POW_CAPTCHA_SOLUTION = f"{API_PREFIX}/pow/solution"
    VERIFY_POW_CAPTCHA_SOLUTION = f"{API_PREFIX}/pow/verify"
    VERIFY_IMAGE_CAPTCHA_SOLUTION_DAPP = f"{API_PREFIX}/image/dapp/verify"
    GET_PROVIDER_DETAILS = f"{API_PREFIX}/details"
    ADMIN_UPDATE_DATASET = f"{API_PREFIX}/admin/dataset"

    @property
    def route(self) -> str:
        """Path relative to ``API_PREFIX``, as registered on the routers."""
        return self.value.removeprefix(API_PREFIX)
