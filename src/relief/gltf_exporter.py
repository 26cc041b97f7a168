"""
glTF/GLB Export Module

Exports relief meshes to glTF binary format for web and desktop viewers.
"""

import logging
from typing import Dict, Any, Optional
from pathlib import Path

import numpy as np
from pygltflib import (
    GLTF2, Asset, Scene, Node, Mesh as GLTFMesh, Primitive, Attributes, Accessor, BufferView, Buffer,
    Material, PbrMetallicRoughness,
    ARRAY_BUFFER, ELEMENT_ARRAY_BUFFER, FLOAT, UNSIGNED_INT,
    POINTS, TRIANGLES,
)

from .heightfield import Mesh

logger = logging.getLogger(__name__)


class GLTFExporter:
    """
    Exports relief meshes to GLB.

    Positions, indices, vertex normals and (when present) vertex colors
    are packed into one binary buffer; relief metadata goes into the
    glTF 'extras' field.
    """

    def __init__(self, embed_metadata: bool = True):
        """
        Initialize exporter.

        Args:
            embed_metadata: Whether to embed relief metadata in glTF extras
        """
        self.embed_metadata = embed_metadata

    def build(
        self,
        mesh: Mesh,
        metadata: Optional[Dict[str, Any]] = None,
        material_color: tuple = (0.85, 0.82, 0.78, 1.0)  # RGBA
    ) -> GLTF2:
        """
        Assemble the glTF document for a mesh.

        Args:
            mesh: Mesh with vertices, faces and optionally normals/colors
            metadata: Optional metadata dictionary to embed
            material_color: Base color as (r, g, b, a) in 0-1 range

        Returns:
            GLTF2 document with its binary blob set
        """
        if mesh.normals is None:
            mesh.compute_normals()

        vertices = mesh.vertices.astype(np.float32)
        chunks = [
            ("POSITION", vertices.tobytes(), "VEC3", len(vertices)),
            ("NORMAL", mesh.normals.astype(np.float32).tobytes(), "VEC3", len(vertices)),
        ]
        # Grids one vertex wide have no faces and are drawn as points;
        # glTF accessors must have count >= 1
        if mesh.n_faces:
            chunks.insert(
                1, ("indices", mesh.faces.astype(np.uint32).flatten().tobytes(), "SCALAR", mesh.n_faces * 3)
            )
        if mesh.vertex_colors is not None:
            chunks.append(
                ("COLOR_0", mesh.vertex_colors.astype(np.float32).tobytes(), "VEC3", len(vertices))
            )

        accessors = []
        buffer_views = []
        attributes = {}
        indices_accessor = None
        offset = 0
        for i, (semantic, blob, accessor_type, count) in enumerate(chunks):
            is_index = semantic == "indices"
            buffer_views.append(BufferView(
                buffer=0,
                byteOffset=offset,
                byteLength=len(blob),
                target=ELEMENT_ARRAY_BUFFER if is_index else ARRAY_BUFFER
            ))
            accessor = Accessor(
                bufferView=i,
                componentType=UNSIGNED_INT if is_index else FLOAT,
                count=count,
                type=accessor_type
            )
            if semantic == "POSITION" and len(vertices):
                accessor.min = vertices.min(axis=0).tolist()
                accessor.max = vertices.max(axis=0).tolist()
            accessors.append(accessor)
            if is_index:
                indices_accessor = i
            else:
                attributes[semantic] = i
            offset += len(blob)

        blob = b"".join(chunk[1] for chunk in chunks)

        gltf = GLTF2(
            asset=Asset(version="2.0", generator="silhouette-relief"),
            scene=0,
            scenes=[Scene(nodes=[0])],
            nodes=[Node(mesh=0)],
            meshes=[GLTFMesh(primitives=[
                Primitive(
                    attributes=Attributes(**attributes),
                    indices=indices_accessor,
                    mode=TRIANGLES if indices_accessor is not None else POINTS,
                    material=0
                )
            ])],
            materials=[
                Material(
                    pbrMetallicRoughness=PbrMetallicRoughness(
                        baseColorFactor=list(material_color),
                        metallicFactor=0.05,
                        roughnessFactor=0.4
                    ),
                    alphaMode="BLEND" if material_color[3] < 1.0 else "OPAQUE",
                    doubleSided=True
                )
            ],
            accessors=accessors,
            bufferViews=buffer_views,
            buffers=[Buffer(byteLength=len(blob))]
        )

        # Embed metadata in extras
        if self.embed_metadata and metadata:
            gltf.extras = metadata

        gltf.set_binary_blob(blob)
        return gltf

    def export(
        self,
        mesh: Mesh,
        output_path: Path,
        metadata: Optional[Dict[str, Any]] = None,
        material_color: tuple = (0.85, 0.82, 0.78, 1.0)
    ) -> Path:
        """
        Export a mesh to GLB format.

        Returns:
            Path to exported file
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        gltf = self.build(mesh, metadata, material_color)
        gltf.save_binary(str(output_path))

        logger.info(f"Exported GLB to {output_path}")
        return output_path
