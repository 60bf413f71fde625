class InstallationResources:
    """Encapsulates the naming scheme used by resources which the operator manages."""

    SHARED_VOLUME_NAME = "porter-shared"
    SHARED_VOLUME_PATH = "/porter-shared"
    CONFIG_VOLUME_NAME = "porter-config"
    CONFIG_VOLUME_PATH = "/porter-config"

    @classmethod
    def job_name(self, installation_name: str, revision: str):
        return f"{installation_name}-{revision}"

    @classmethod
    def outputs_volume_claim_name(self, installation_name: str, revision: str):
        return self.job_name(installation_name, revision)

    @classmethod
    def container_name(self, installation_name: str, revision: str):
        return self.job_name(installation_name, revision)

    @classmethod
    def config_secret_name(self, installation_name: str):
        return "porter-config"

    @classmethod
    def env_secret_name(self, installation_name: str):
        return "porter-env"

    @classmethod
    def image(self, repository: str, tag_prefix: str, version: str):
        return f"{repository}:{tag_prefix}{version}"
