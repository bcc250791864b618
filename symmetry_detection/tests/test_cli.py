"""Tests for the symmetry detection and visualisation command-line tools."""

from __future__ import annotations

import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

from symmetry_detection import cli, visualize  # noqa: E402
from symmetry_detection.cloud import save_point_cloud_ply  # noqa: E402
from symmetry_detection.symmetry import ReflectionalSymmetry  # noqa: E402
from symmetry_detection.synthetic import SymmetricCloudSpec, generate_symmetric_cloud  # noqa: E402


class TestSymmetryDetectionCLI(unittest.TestCase):
    def setUp(self) -> None:
        spec = SymmetricCloudSpec(symmetry=ReflectionalSymmetry([1.0, 0.0, 0.0], 0.0), min_gap=0.05)
        self.cloud = generate_symmetric_cloud(spec, num_points=150, random_state=17)

    def test_cli_detects_plane_and_writes_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir)
            cloud_path = tmp_path / "cloud.ply"
            json_path = tmp_path / "symmetries.json"
            save_point_cloud_ply(cloud_path, self.cloud)

            buffer = io.StringIO()
            with redirect_stdout(buffer):
                exit_code = cli.main(
                    [
                        str(cloud_path),
                        "--output-json",
                        str(json_path),
                        "--refine-iterations",
                        "10",
                        "--num-angle-divisions",
                        "3",
                    ]
                )

            self.assertEqual(exit_code, 0)
            stdout_payload = json.loads(buffer.getvalue())
            file_payload = json.loads(json_path.read_text(encoding="utf8"))

        self.assertEqual(stdout_payload, file_payload)
        self.assertIsInstance(stdout_payload, list)
        self.assertTrue(
            any(abs(item["normal"][0]) > 0.999 and abs(item["offset"]) < 1e-3 for item in stdout_payload)
        )
        for item in stdout_payload:
            self.assertEqual(
                set(item),
                {
                    "id",
                    "normal",
                    "offset",
                    "origin",
                    "reference_point",
                    "occlusion_score",
                    "cloud_inlier_score",
                    "corresp_inlier_score",
                    "num_correspondences",
                },
            )

    def test_cli_returns_error_on_missing_file(self) -> None:
        with self.assertRaises(SystemExit):
            cli.main(["missing-file.ply"])

    def test_cli_rejects_invalid_config(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir)
            cloud_path = tmp_path / "cloud.ply"
            config_path = tmp_path / "config.json"
            save_point_cloud_ply(cloud_path, self.cloud)
            config_path.write_text(json.dumps({"num_angle_divisions": 0}), encoding="utf8")
            with self.assertRaises(SystemExit):
                cli.main([str(cloud_path), "--config", str(config_path)])

    def test_cli_rejects_non_numeric_config_angle(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir)
            cloud_path = tmp_path / "cloud.ply"
            config_path = tmp_path / "config.json"
            save_point_cloud_ply(cloud_path, self.cloud)
            config_path.write_text(json.dumps({"min_inlier_normal_angle": "ten"}), encoding="utf8")
            with self.assertRaises(SystemExit):
                cli.main([str(cloud_path), "--config", str(config_path)])

    def test_visualize_renders_detections(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir)
            cloud_path = tmp_path / "cloud.ply"
            json_path = tmp_path / "symmetries.json"
            image_path = tmp_path / "render" / "symmetries.png"
            save_point_cloud_ply(cloud_path, self.cloud)
            json_path.write_text(
                json.dumps([{"id": 0, "normal": [1.0, 0.0, 0.0], "offset": 0.0}]), encoding="utf8"
            )

            exit_code = visualize.main([str(cloud_path), str(json_path), "--output", str(image_path)])

            self.assertEqual(exit_code, 0)
            self.assertTrue(image_path.exists())
            self.assertGreater(image_path.stat().st_size, 0)


if __name__ == "__main__":
    unittest.main()
