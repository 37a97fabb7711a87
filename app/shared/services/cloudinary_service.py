# app/shared/services/cloudinary_service.py

import cloudinary
import cloudinary.uploader
import cloudinary.api
from fastapi import UploadFile, HTTPException
from app.config.settings import settings
from typing import List
import uuid
import logging
from datetime import datetime

logger = logging.getLogger(__name__)

class CloudinaryService:

    def __init__(self):
        """Inicializar configuración de Cloudinary"""
        if not all([settings.cloudinary_cloud_name, settings.cloudinary_api_key, settings.cloudinary_api_secret]):
            logger.warning("⚠️ Cloudinary no está completamente configurado")
            self.configured = False
            return

        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            secure=True
        )
        self.configured = True
        logger.info("✅ Cloudinary configurado correctamente")

    async def upload_request_photo(self, image_file: UploadFile, agent_id: int) -> str:
        """
        Subir foto de evidencia de una solicitud de descuento

        Returns:
            str: URL segura de la imagen subida

        Raises:
            HTTPException: si el archivo no es válido o la subida falla
        """
        if not self.configured:
            raise HTTPException(
                status_code=500,
                detail="Cloudinary no está configurado correctamente"
            )

        if image_file.content_type not in settings.allowed_image_formats:
            raise HTTPException(
                status_code=400,
                detail="El archivo debe ser una imagen válida"
            )

        await image_file.seek(0)
        file_content = await image_file.read()

        if len(file_content) > settings.max_image_size:
            raise HTTPException(
                status_code=400,
                detail=f"La imagen no debe superar {settings.max_image_size // (1024*1024)}MB"
            )

        file_id = str(uuid.uuid4())[:8]
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        public_id = f"agent_{agent_id}_{timestamp}_{file_id}"

        logger.info(f"📤 Subiendo foto de solicitud: {public_id}")

        try:
            result = cloudinary.uploader.upload(
                file_content,
                public_id=public_id,
                folder=f"{settings.cloudinary_folder}/requests",
                transformation=[
                    {"width": 1600, "height": 1600, "crop": "limit", "quality": "auto:good"}
                ],
                tags=["discount_request", f"agent_{agent_id}"],
                resource_type="image",
                overwrite=False,
                unique_filename=True,
                use_filename=False
            )
        except Exception as e:
            logger.error(f"❌ Error subiendo imagen a Cloudinary: {str(e)}")
            raise HTTPException(status_code=502, detail=f"Error subiendo imagen: {str(e)}")

        if 'secure_url' not in result:
            raise HTTPException(status_code=502, detail="Cloudinary no retornó URL válida")

        logger.info(f"✅ Foto subida: {result['secure_url']} ({result.get('bytes', 0)} bytes)")
        return result["secure_url"]

    async def upload_request_photos(self, photos: List[UploadFile], agent_id: int) -> List[str]:
        """
        Subir varias fotos. Una foto que falla se registra en el log y se omite,
        la solicitud se crea con las que sí subieron.
        """
        urls = []
        for photo in photos:
            if photo is None or not photo.filename:
                continue
            try:
                urls.append(await self.upload_request_photo(photo, agent_id))
            except HTTPException as e:
                logger.warning(f"⚠️ Foto '{photo.filename}' omitida: {e.detail}")
        return urls

    def health_check(self) -> dict:
        """Estado de conexión con Cloudinary"""
        if not self.configured:
            return {"status": "disabled", "configured": False}
        try:
            cloudinary.api.ping()
            return {"status": "healthy", "configured": True}
        except Exception as e:
            return {"status": "error", "configured": True, "message": str(e)}


cloudinary_service = CloudinaryService()


def get_photo_uploader() -> CloudinaryService:
    """Dependency del servicio de fotos (reemplazable en tests)"""
    return cloudinary_service
