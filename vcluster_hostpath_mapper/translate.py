from vcluster_hostpath_mapper.naming import safe_concat_name


class Translator:
    """
    Maps a virtual pod's (name, namespace) to the name of the physical pod
    the syncer created for it in the host cluster.
    """

    def __init__(self, target_namespace: str, vcluster_name: str):
        self.target_namespace = target_namespace
        self.vcluster_name = vcluster_name

    def physical_name(self, name: str, namespace: str) -> str:
        raise NotImplementedError


class SingleNamespaceTranslator(Translator):
    """
    Every virtual object lives in the target namespace, so the virtual
    namespace is folded into the physical name.
    """

    def physical_name(self, name: str, namespace: str) -> str:
        return safe_concat_name(name, "x", namespace, "x", self.vcluster_name)


class MultiNamespaceTranslator(Translator):
    """
    Each virtual namespace gets its own physical namespace and names are
    kept as they are.
    """

    def physical_name(self, name: str, namespace: str) -> str:
        return name


def make_translator(config) -> Translator:
    if config.multi_namespace:
        return MultiNamespaceTranslator(config.target_namespace, config.name)
    return SingleNamespaceTranslator(config.target_namespace, config.name)
