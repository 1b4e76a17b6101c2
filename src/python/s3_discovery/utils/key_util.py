class KeyUtil:

    @staticmethod
    def normalize_prefix(file_prefix: str) -> str:
        return file_prefix.strip("/")

    @staticmethod
    def get_cluster_prefix(file_prefix: str, cluster_id: str) -> str:
        prefix: str = KeyUtil.normalize_prefix(file_prefix)
        if prefix:
            return f"{prefix}/{cluster_id}/"
        return f"{cluster_id}/"

    @staticmethod
    def get_node_key(file_prefix: str, cluster_id: str, node_id: str) -> str:
        return f"{KeyUtil.get_cluster_prefix(file_prefix, cluster_id)}{node_id}"
